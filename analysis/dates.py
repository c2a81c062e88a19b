"""Date detection and parsing for tabular dashboard data.

Uploaded datasets rarely declare column types, so date columns are inferred
from cell values. Two detectors exist:

- `looks_like_date_value`: the strict rule used by the dashboard date window.
  It rejects bare numbers (IDs, amounts) that a permissive parser would read
  as dates.
- `is_valid_date`: the permissive rule used for chronological sorting and the
  heatmap week re-bucketing.

Parsing goes through python-dateutil for free-form text after the fast ISO and
slash-format paths.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import date, datetime, timezone
from typing import Final

from dateutil import parser as date_parser

MIN_YEAR: Final[int] = 1900
MAX_YEAR: Final[int] = 2100

_STRICT_DATE_PATTERN: Final = re.compile(
    r"^\d{4}-\d{2}-\d{2}(T|\s|$)|^\d{2}/\d{2}/\d{4}$|^\d{4}/\d{2}/\d{2}$"
)
_DATE_SEPARATORS: Final = re.compile(r"[-/T:]")
_SLASH_FORMATS: Final[tuple[str, ...]] = ("%m/%d/%Y", "%Y/%m/%d")

DATE_NAME_KEYWORDS: Final[tuple[str, ...]] = (
    "date",
    "time",
    "datetime",
    "timestamp",
    "created",
    "updated",
    "modified",
    "year",
    "month",
    "day",
    "hour",
    "minute",
    "second",
    "start",
    "end",
    "begin",
    "finish",
    "period",
    "quarter",
    "week",
    "dob",
    "birthday",
    "anniversary",
    "expiry",
    "due",
)


def parse_date_value(value: object) -> datetime | None:
    """Parse a cell value into a naive datetime.

    Args:
        value: A `date`, `datetime`, epoch-milliseconds number, or date string.

    Returns:
        A naive datetime (aware values are converted to UTC first), or None
        when the value cannot be interpreted as a date.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError):
            return None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return _naive(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _SLASH_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    try:
        return _naive(date_parser.parse(text))
    except (ValueError, OverflowError):
        return None


def parse_day(value: object) -> date | None:
    """Parse a cell value and strip the time of day."""

    parsed = parse_date_value(value)
    return parsed.date() if parsed is not None else None


def is_valid_date(value: object) -> bool:
    """Return True when a value is a date string or date within 1900-2100.

    Numbers are rejected outright; only strings and date objects qualify.
    """

    if value is None:
        return False
    if not isinstance(value, (str, date)):
        return False
    parsed = parse_date_value(value)
    if parsed is None:
        return False
    return MIN_YEAR <= parsed.year <= MAX_YEAR


def looks_like_date_value(value: object) -> bool:
    """Apply the strict date rule used to pick a date-window column.

    A value qualifies when it is a native date, matches a strict textual
    pattern (`YYYY-MM-DD[...]`, `MM/DD/YYYY`, `YYYY/MM/DD`), or parses to a
    year in 1900-2100 *and* contains a date-like separator (`-`, `/`, `:`, `T`).

    Args:
        value: Candidate cell value.

    Returns:
        True when the value is treated as a date.
    """

    if not value:
        return False
    if isinstance(value, date):
        return True
    if not isinstance(value, str):
        return False
    if _STRICT_DATE_PATTERN.search(value.strip()):
        return True
    parsed = parse_date_value(value)
    if parsed is None or not MIN_YEAR <= parsed.year <= MAX_YEAR:
        return False
    return bool(_DATE_SEPARATORS.search(value))


def detect_date_columns(rows: Sequence[Mapping[str, object]]) -> list[str]:
    """Return columns whose first-row value passes the strict date rule."""

    if not rows:
        return []
    first = rows[0]
    return [column for column, value in first.items() if looks_like_date_value(value)]


def is_date_column(
    rows: Sequence[Mapping[str, object]],
    column: str,
    *,
    sample_size: int = 10,
) -> bool:
    """Return True when at least 80% of sampled non-null values are dates.

    Args:
        rows: Dataset rows.
        column: Column to inspect.
        sample_size: Number of non-null values to sample.

    Returns:
        True when the column appears to contain dates.
    """

    window = rows[: sample_size * 2]
    samples = [row.get(column) for row in window if row.get(column) is not None][:sample_size]
    if not samples:
        return False
    valid = sum(1 for sample in samples if is_valid_date(sample))
    return valid >= len(samples) * 0.8


def column_name_suggests_date(column: str) -> bool:
    """Return True when a column name contains a date-related keyword."""

    lowered = column.lower()
    return any(keyword in lowered for keyword in DATE_NAME_KEYWORDS)


def best_date_column(rows: Sequence[Mapping[str, object]]) -> str | None:
    """Pick the most likely date column, preferring date-like column names.

    Args:
        rows: Dataset rows.

    Returns:
        The chosen column name, or None when no column holds dates.
    """

    if not rows:
        return None
    columns = list(rows[0].keys())
    named = [col for col in columns if column_name_suggests_date(col) and is_date_column(rows, col)]
    if named:
        for col in named:
            if "date" in col.lower():
                return col
        return named[0]
    for col in columns:
        if is_date_column(rows, col):
            return col
    return None


def _naive(value: datetime) -> datetime:
    """Convert aware datetimes to naive UTC so values stay comparable."""

    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
