"""Two-dimensional aggregation and auto-collapse for heatmap charts.

Heatmaps bin rows by an `(x, y)` pair and reduce the value column per cell.
Wide results are then collapsed so the grid stays readable:

- more than `MAX_Y_CATEGORIES` rows: keep the top categories by total value;
- more than `MAX_X_CATEGORIES` columns: re-bucket date columns into
  Sunday-start weeks, otherwise keep the top columns by total value.

Collapsing an already collapsed grid returns the same grid.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import timedelta
from typing import Any, Final

from .aggregations import aggregate_values, cell_text
from .dates import is_valid_date, parse_date_value
from .dto import AggregationMethod
from .numbers import coerce_number_or_zero, parse_number_or_none

logger = logging.getLogger(__name__)

MAX_Y_CATEGORIES: Final[int] = 15
MAX_X_CATEGORIES: Final[int] = 30


def composite_key(x_value: object, y_value: object) -> str:
    """Return the display key of a heatmap cell (`"x|y"`)."""

    return f"{x_value}|{y_value}"


def aggregate_heatmap(
    rows: Sequence[Mapping[str, Any]],
    x_key: str,
    y_key: str,
    value_key: str,
    method: AggregationMethod | str = "sum",
    *,
    percentile: float | None = None,
) -> list[dict[str, Any]]:
    """Bin rows into heatmap cells.

    Args:
        rows: Input rows.
        x_key: Column providing the cell's X category.
        y_key: Column providing the cell's Y category.
        value_key: Column reduced per cell.
        method: Aggregation method.
        percentile: Percentile rank for `percentile`.

    Returns:
        One `{x_key, y_key, value_key}` row per cell in first-seen order, with
        X and Y rendered as strings. Rows with a null X or Y are dropped;
        unparseable values are skipped and cells with no numeric values are
        omitted.
    """

    cells: dict[tuple[str, str], list[float]] = {}
    for row in rows:
        x_value = row.get(x_key)
        y_value = row.get(y_key)
        if x_value is None or y_value is None:
            continue
        values = cells.setdefault((cell_text(x_value), cell_text(y_value)), [])
        number = parse_number_or_none(row.get(value_key))
        if number is not None:
            values.append(number)

    aggregated: list[dict[str, Any]] = []
    for (x_text, y_text), values in cells.items():
        if not values:
            continue
        aggregated.append(
            {
                x_key: x_text,
                y_key: y_text,
                value_key: aggregate_values(values, method, percentile=percentile),
            }
        )

    logger.debug("Heatmap binned %d rows into %d cells.", len(rows), len(aggregated))
    return aggregated


def collapse_heatmap(
    cells: Sequence[Mapping[str, Any]],
    x_key: str,
    y_key: str,
    value_key: str,
) -> list[dict[str, Any]]:
    """Collapse a heatmap grid that has too many rows or columns.

    Args:
        cells: Output of `aggregate_heatmap`.
        x_key: X column.
        y_key: Y column.
        value_key: Value column.

    Returns:
        The collapsed cells. The category counts are taken before any limit
        is applied.
    """

    collapsed = [dict(cell) for cell in cells]
    distinct_x = {cell.get(x_key) for cell in collapsed}
    distinct_y = {cell.get(y_key) for cell in collapsed}

    if len(distinct_y) > MAX_Y_CATEGORIES:
        keep_y = _top_categories(collapsed, y_key, value_key, MAX_Y_CATEGORIES)
        collapsed = [cell for cell in collapsed if cell_text(cell.get(y_key)) in keep_y]
        logger.info("Heatmap limited to top %d of %d Y categories.", MAX_Y_CATEGORIES, len(distinct_y))

    if len(distinct_x) > MAX_X_CATEGORIES and collapsed:
        if is_valid_date(collapsed[0].get(x_key)):
            collapsed = rebucket_weekly(collapsed, x_key, y_key, value_key)
            logger.info("Heatmap re-bucketed %d dates into %d weeks.", len(distinct_x), len({c[x_key] for c in collapsed}))
        else:
            keep_x = _top_categories(collapsed, x_key, value_key, MAX_X_CATEGORIES)
            collapsed = [cell for cell in collapsed if cell_text(cell.get(x_key)) in keep_x]
            logger.info("Heatmap limited to top %d of %d X categories.", MAX_X_CATEGORIES, len(distinct_x))

    return collapsed


def rebucket_weekly(
    cells: Sequence[Mapping[str, Any]],
    x_key: str,
    y_key: str,
    value_key: str,
) -> list[dict[str, Any]]:
    """Re-sum cells per `(Sunday-start week, y)`.

    Returns:
        Cells keyed by the week start as `YYYY-MM-DD`. Cells whose X value is
        not a parseable date are dropped.
    """

    weeks: dict[str, dict[str, float]] = {}
    for cell in cells:
        moment = parse_date_value(str(cell.get(x_key)))
        if moment is None:
            logger.warning("Dropping heatmap cell with unparseable date %r.", cell.get(x_key))
            continue
        day = moment.date()
        week_key = (day - timedelta(days=(day.weekday() + 1) % 7)).isoformat()
        totals = weeks.setdefault(week_key, {})
        y_text = cell_text(cell.get(y_key))
        totals[y_text] = totals.get(y_text, 0.0) + coerce_number_or_zero(cell.get(value_key))

    return [
        {x_key: week_key, y_key: y_text, value_key: total}
        for week_key, totals in weeks.items()
        for y_text, total in totals.items()
    ]


def _top_categories(
    cells: Sequence[Mapping[str, Any]],
    category_key: str,
    value_key: str,
    limit: int,
) -> set[str]:
    """Return the `limit` categories with the largest total value."""

    totals: dict[str, float] = {}
    for cell in cells:
        category = cell_text(cell.get(category_key))
        totals[category] = totals.get(category, 0.0) + coerce_number_or_zero(cell.get(value_key))
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return {category for category, _total in ranked[:limit]}
