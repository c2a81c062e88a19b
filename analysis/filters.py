"""Row filtering for dashboard charts.

Two filter scopes exist:

- chart filters (`ChartFilter`), applied per chart at the start of its
  aggregation pass by `apply_chart_filters`;
- dashboard filters (`DashboardFilter`) plus the shared date window and
  granularity selector, applied once for every chart by `filter_rows`.

Filtering never mutates input rows.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, Final, Union

from .aggregations import cell_text
from .dates import detect_date_columns, parse_date_value, parse_day
from .dto import ChartFilter, DashboardFilter, DateWindow, FilterResult, Granularity
from .granularity import aggregate_by_granularity, aggregate_date_buckets
from .numbers import loose_number, parse_float_prefix

logger = logging.getLogger(__name__)

NUMERIC_SCHEMA_TYPES: Final[frozenset[str]] = frozenset({"number"})

SchemaLike = Union[Mapping[str, str], Sequence[Mapping[str, Any]]]


def numeric_columns_from_schema(schema: SchemaLike | None) -> list[str]:
    """Return the names of columns a dataset schema declares numeric.

    Args:
        schema: Either a `{column: type}` mapping or a sequence of
            `{"name": ..., "type": ...}` column descriptors.

    Returns:
        Column names in schema order.
    """

    if not schema:
        return []
    if isinstance(schema, Mapping):
        return [name for name, kind in schema.items() if kind in NUMERIC_SCHEMA_TYPES]
    return [
        str(column.get("name"))
        for column in schema
        if column.get("name") and column.get("type") in NUMERIC_SCHEMA_TYPES
    ]


def apply_chart_filters(
    rows: Sequence[Mapping[str, Any]],
    filters: Iterable[ChartFilter] | None,
    schema: SchemaLike | None = None,
) -> list[dict[str, Any]]:
    """Apply a chart's own filters in list order.

    Args:
        rows: Input rows.
        filters: Chart filters; inactive filters are skipped.
        schema: Dataset schema, used by `date_aggregation` to find the columns
            to sum.

    Returns:
        New list of rows.
    """

    filtered: list[dict[str, Any]] = [dict(row) for row in rows]
    if not filters:
        return filtered

    for chart_filter in filters:
        if not chart_filter.is_active:
            continue
        before = len(filtered)
        if chart_filter.type == "date_aggregation":
            if chart_filter.date_granularity and chart_filter.column:
                filtered = aggregate_date_buckets(
                    filtered,
                    chart_filter.column,
                    chart_filter.date_granularity,
                    numeric_columns=numeric_columns_from_schema(schema),
                )
        elif chart_filter.type == "categorical":
            filtered = _apply_categorical(filtered, chart_filter)
        elif chart_filter.type == "numeric_range":
            filtered = _apply_numeric_range(filtered, chart_filter)
        logger.debug(
            "Chart filter %s (%s) on %r: %d -> %d rows.",
            chart_filter.id,
            chart_filter.type,
            chart_filter.column,
            before,
            len(filtered),
        )
    return filtered


def _apply_categorical(rows: list[dict[str, Any]], chart_filter: ChartFilter) -> list[dict[str, Any]]:
    if not chart_filter.selected_values:
        return rows
    selected = set(chart_filter.selected_values)
    return [row for row in rows if _display_string(row.get(chart_filter.column)) in selected]


def _apply_numeric_range(rows: list[dict[str, Any]], chart_filter: ChartFilter) -> list[dict[str, Any]]:
    kept: list[dict[str, Any]] = []
    for row in rows:
        value = parse_float_prefix(cell_text(row.get(chart_filter.column) or 0).strip())
        if value is None:
            continue
        if chart_filter.min is not None and value < chart_filter.min:
            continue
        if chart_filter.max is not None and value > chart_filter.max:
            continue
        kept.append(row)
    return kept


def matches_dashboard_filter(row: Mapping[str, Any], dashboard_filter: DashboardFilter) -> bool:
    """Return True when a row passes one dashboard filter.

    Inactive filters and unknown operators pass every row.
    """

    if not dashboard_filter.is_active:
        return True

    cell = row.get(dashboard_filter.column)
    operand = dashboard_filter.value
    operator = dashboard_filter.operator

    if operator == "equals":
        return _strict_equals(cell, operand)
    if operator == "contains":
        return cell_text(operand).lower() in cell_text(cell).lower()
    if operator == "greater_than":
        return loose_number(cell) > loose_number(operand)
    if operator == "less_than":
        return loose_number(cell) < loose_number(operand)
    if operator == "between":
        if not isinstance(operand, (list, tuple)) or len(operand) < 2:
            return False
        number = loose_number(cell)
        return loose_number(operand[0]) <= number <= loose_number(operand[1])
    if operator == "in":
        return isinstance(operand, (list, tuple)) and any(_strict_equals(cell, item) for item in operand)
    return True


def apply_dashboard_filters(
    rows: Sequence[Mapping[str, Any]],
    filters: Iterable[DashboardFilter] | None,
) -> list[dict[str, Any]]:
    """Keep rows that pass every active dashboard filter."""

    active = [dashboard_filter for dashboard_filter in filters or () if dashboard_filter.is_active]
    if not active:
        return [dict(row) for row in rows]
    return [dict(row) for row in rows if all(matches_dashboard_filter(row, f) for f in active)]


def apply_date_window(
    rows: Sequence[Mapping[str, Any]],
    window: DateWindow,
    date_column: str,
) -> list[dict[str, Any]]:
    """Keep rows whose date falls within an inclusive, day-granular window.

    Rows with a missing or unparseable date are excluded.
    """

    kept: list[dict[str, Any]] = []
    for row in rows:
        day = parse_day(row.get(date_column))
        if day is not None and window.contains(day):
            kept.append(dict(row))
    return kept


def filter_rows(
    rows: Sequence[Mapping[str, Any]],
    *,
    chart_filters: Iterable[ChartFilter] | None = None,
    dashboard_filters: Iterable[DashboardFilter] | None = None,
    date_window: DateWindow | None = None,
    date_column: str | None = None,
    granularity: Granularity | None = None,
    schema: SchemaLike | None = None,
) -> FilterResult:
    """Run the Row Filter stage for one chart.

    Order: chart filters, date window, dashboard filters, then granularity
    bucketing. Bucketing happens only while a date window is active, so
    whole-dataset calculations are never reduced by the granularity selector
    alone.

    Args:
        rows: Raw dataset rows.
        chart_filters: The chart's own filters.
        dashboard_filters: Filters shared across the dashboard (AND semantics).
        date_window: Inclusive date bounds.
        date_column: Explicitly selected date column. When omitted, the first
            column whose first-row value looks like a date is used.
        granularity: Bucket size for the granularity selector.
        schema: Dataset schema for chart-level date aggregation.

    Returns:
        FilterResult with the filtered rows and the date column in use.
    """

    if not rows:
        return FilterResult(rows=[], date_column=date_column)

    filtered = apply_chart_filters(rows, chart_filters, schema)
    window = date_window or DateWindow()
    resolved_column = date_column

    if window.is_active:
        detected = detect_date_columns(filtered)
        if resolved_column is None and detected:
            resolved_column = detected[0]
            logger.info("Auto-selected date column %r for the date window.", resolved_column)
        if resolved_column is not None and resolved_column in detected:
            before = len(filtered)
            filtered = apply_date_window(filtered, window, resolved_column)
            logger.debug("Date window on %r: %d -> %d rows.", resolved_column, before, len(filtered))

    filtered = apply_dashboard_filters(filtered, dashboard_filters)

    bucketed = False
    if window.is_active and granularity is not None and filtered:
        detected = detect_date_columns(filtered)
        if detected:
            bucket_column = resolved_column if resolved_column in detected else detected[0]
            filtered = _sort_by_date(aggregate_by_granularity(filtered, granularity, bucket_column), bucket_column)
            bucketed = True
    elif granularity is not None:
        logger.debug("Skipping %s bucketing: no active date window.", granularity)

    return FilterResult(rows=filtered, date_column=resolved_column, bucketed=bucketed)


def unique_values(rows: Iterable[Mapping[str, Any]], column: str) -> list[str]:
    """Return the sorted distinct string values of a column, skipping nulls."""

    return sorted({cell_text(row.get(column)) for row in rows if row.get(column) is not None})


def active_filter_count(filters: Iterable[ChartFilter] | None) -> int:
    """Count active chart filters."""

    return sum(1 for chart_filter in filters or () if chart_filter.is_active)


def filter_summary(chart_filter: ChartFilter) -> str:
    """Describe a chart filter for display, e.g. `Region: 2 selected`.

    Returns:
        Human-readable text, or an empty string for inactive filters.
    """

    if not chart_filter.is_active:
        return ""
    if chart_filter.type == "date_aggregation":
        return f"Group by {chart_filter.date_granularity}"
    if chart_filter.type == "categorical":
        return f"{chart_filter.column}: {len(chart_filter.selected_values)} selected"
    if chart_filter.type == "numeric_range":
        low = _format_bound(chart_filter.min)
        high = _format_bound(chart_filter.max)
        if chart_filter.min is not None and chart_filter.max is not None:
            return f"{chart_filter.column}: {low} - {high}"
        if chart_filter.min is not None:
            return f"{chart_filter.column} ≥ {low}"
        if chart_filter.max is not None:
            return f"{chart_filter.column} ≤ {high}"
    return ""


def _sort_by_date(rows: list[dict[str, Any]], column: str) -> list[dict[str, Any]]:
    """Sort rows ascending by date; keep the order when any label is unparseable."""

    parsed = [parse_date_value(row.get(column)) for row in rows]
    if any(moment is None for moment in parsed):
        return rows
    order = sorted(range(len(rows)), key=lambda index: parsed[index])
    return [rows[index] for index in order]


def _strict_equals(left: object, right: object) -> bool:
    """Compare without cross-type coercion (`1 != "1"`, `True != 1`)."""

    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left is right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    return type(left) is type(right) and left == right


def _display_string(value: object, *, empty: str = "") -> str:
    """Render a cell value as text; falsy values become `empty`."""

    return cell_text(value) if value else empty


def _format_bound(value: float | None) -> str:
    if value is None:
        return ""
    return str(int(value)) if float(value).is_integer() else str(value)
