"""Time bucketing of date-indexed rows (day/week/month/quarter/year).

Two bucketing flavours exist:

- `aggregate_by_granularity`: the dashboard-wide granularity selector. Weeks
  start on Sunday and bucket labels are human readable (`Jan 5, 2024`,
  `Q1 2024`).
- `aggregate_date_buckets`: the per-chart `date_aggregation` filter. Weeks
  start on Monday and bucket labels are sortable keys (`2024-01`, `2024-Q1`).
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from .dates import detect_date_columns, parse_date_value
from .dto import Granularity
from .numbers import loose_number, parse_float_prefix

logger = logging.getLogger(__name__)

SUNDAY = 6
MONDAY = 0


def start_of_week(day: date, *, week_starts_on: int = SUNDAY) -> date:
    """Return the first day of the week containing `day`.

    Args:
        day: Any date.
        week_starts_on: Python weekday number of the first day (Monday=0, Sunday=6).
    """

    return day - timedelta(days=(day.weekday() - week_starts_on) % 7)


def bucket_start(day: date, granularity: Granularity, *, week_starts_on: int = SUNDAY) -> date:
    """Return the first day of the bucket containing `day`."""

    if granularity == "week":
        return start_of_week(day, week_starts_on=week_starts_on)
    if granularity == "month":
        return day.replace(day=1)
    if granularity == "quarter":
        return date(day.year, 3 * ((day.month - 1) // 3) + 1, 1)
    if granularity == "year":
        return date(day.year, 1, 1)
    return day


def bucket_label(moment: datetime, granularity: Granularity) -> str:
    """Return the display label used by dashboard-wide bucketing.

    Args:
        moment: Parsed row date.
        granularity: Bucket size.

    Returns:
        `Jan 5, 2024` (day), the week start in the same format (week),
        `Jan 2024` (month), `Q1 2024` (quarter) or `2024` (year).
    """

    day = moment.date()
    if granularity == "week":
        return _long_day(start_of_week(day))
    if granularity == "month":
        return f"{day:%b %Y}"
    if granularity == "quarter":
        return f"Q{(day.month - 1) // 3 + 1} {day.year}"
    if granularity == "year":
        return f"{day.year}"
    return _long_day(day)


def bucket_key(day: date, granularity: Granularity) -> str:
    """Return the sortable key used by the per-chart date aggregation filter."""

    if granularity == "week":
        return start_of_week(day, week_starts_on=MONDAY).isoformat()
    if granularity == "month":
        return f"{day:%Y-%m}"
    if granularity == "quarter":
        return f"{day.year}-Q{(day.month - 1) // 3 + 1}"
    if granularity == "year":
        return f"{day.year}"
    return day.isoformat()


def aggregate_by_granularity(
    rows: Sequence[Mapping[str, Any]],
    granularity: Granularity,
    date_column: str | None = None,
) -> list[dict[str, Any]]:
    """Collapse rows into one row per time bucket.

    Args:
        rows: Input rows.
        granularity: Bucket size.
        date_column: Column holding row dates. Detected from the first row when
            omitted; rows are returned unchanged when no date column exists.

    Returns:
        One row per bucket, ordered by bucket start. The date column holds the
        bucket label; columns whose non-null values are all numeric are summed,
        other columns keep their single unique value or the first value. Rows
        with missing or unparseable dates are dropped.
    """

    if not rows:
        return []
    if date_column is None:
        detected = detect_date_columns(rows)
        if not detected:
            return [dict(row) for row in rows]
        date_column = detected[0]

    groups: dict[date, tuple[str, list[Mapping[str, Any]]]] = {}
    for row in rows:
        raw = row.get(date_column)
        if not raw:
            continue
        moment = parse_date_value(raw)
        if moment is None:
            continue
        start = bucket_start(moment.date(), granularity)
        label = bucket_label(moment, granularity)
        groups.setdefault(start, (label, []))[1].append(row)

    aggregated: list[dict[str, Any]] = []
    for start in sorted(groups):
        label, group_rows = groups[start]
        out: dict[str, Any] = {date_column: label}
        for key in group_rows[0]:
            if key == date_column:
                continue
            values = [row.get(key) for row in group_rows if row.get(key) is not None]
            if not values:
                out[key] = None
                continue
            numbers = [loose_number(value) for value in values]
            if all(number == number for number in numbers):
                out[key] = sum(numbers)
            else:
                out[key] = values[0]
        aggregated.append(out)

    logger.debug(
        "Bucketed %d rows into %d %s buckets on %r.",
        len(rows),
        len(aggregated),
        granularity,
        date_column,
    )
    return aggregated


def aggregate_date_buckets(
    rows: Sequence[Mapping[str, Any]],
    column: str,
    granularity: Granularity,
    *,
    numeric_columns: Sequence[str] = (),
) -> list[dict[str, Any]]:
    """Apply a per-chart date aggregation filter.

    Args:
        rows: Input rows.
        column: Date column to bucket on.
        granularity: Bucket size (weeks start on Monday).
        numeric_columns: Columns declared numeric by the dataset schema; they
            are summed. Every other column takes its most common non-empty value.

    Returns:
        One row per bucket key, sorted by key, carrying `_aggregatedDate`,
        `_granularity` and `_rowCount` metadata. Rows whose date is empty or
        unparseable are skipped.
    """

    grouped: dict[str, list[Mapping[str, Any]]] = {}
    for row in rows:
        raw = row.get(column)
        if not raw or isinstance(raw, bool):
            continue
        moment = parse_date_value(raw)
        if moment is None:
            logger.warning("Skipping invalid date value %r in column %r.", raw, column)
            continue
        grouped.setdefault(bucket_key(moment.date(), granularity), []).append(row)

    numeric = [name for name in numeric_columns if name != column]
    aggregated: list[dict[str, Any]] = []
    for key, group_rows in grouped.items():
        out: dict[str, Any] = {
            column: key,
            "_aggregatedDate": key,
            "_granularity": granularity,
            "_rowCount": len(group_rows),
        }
        for name in numeric:
            total = 0.0
            for row in group_rows:
                parsed = parse_float_prefix(str(row.get(name) or 0).strip())
                if parsed is not None:
                    total += parsed
            out[name] = total
        for name in group_rows[0]:
            if name == column or name in numeric:
                continue
            present = [row.get(name) for row in group_rows if row.get(name)]
            out[name] = Counter(present).most_common(1)[0][0] if present else None
        aggregated.append(out)

    return sorted(aggregated, key=lambda row: str(row["_aggregatedDate"]))


def _long_day(day: date) -> str:
    """Format a date as `Jan 5, 2024`."""

    return f"{day:%b} {day.day}, {day.year}"
