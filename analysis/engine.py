"""Aggregation engine: turn filtered rows into the series a chart plots.

Every chart type has a registered variant describing whether it sees the whole
dataset and how its rows are reshaped. `aggregate` runs the shared steps
(row cap, formula scorecards, chronological sort) and then the variant.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Final

from .aggregations import aggregate_chart_data
from .dates import is_valid_date, parse_date_value
from .dto import ChartType
from .formula import FormulaError, calculate_formula
from .heatmap import aggregate_heatmap, collapse_heatmap
from .mapping import FieldMapping, resolve_keys
from .numbers import coerce_number_or_zero
from .ranking import rank_rows

logger = logging.getLogger(__name__)

MAX_RENDER_ROWS: Final[int] = 1000

Rows = list[dict[str, Any]]
Transform = Callable[[Rows, FieldMapping], Rows]


@dataclass(frozen=True, slots=True)
class ChartVariant:
    """How one chart type is aggregated.

    Args:
        uses_all_rows: When False, only the first `MAX_RENDER_ROWS` rows are used.
        transform: Reshapes the sorted working rows for the chart.
    """

    uses_all_rows: bool
    transform: Transform


def _passthrough(rows: Rows, mapping: FieldMapping) -> Rows:
    return rows


def _grouped(rows: Rows, mapping: FieldMapping) -> Rows:
    """Group by the X key when an aggregation method is configured."""

    x_key = mapping.x_key
    y_keys = mapping.y_keys
    if not (mapping.aggregation and x_key and y_keys):
        return rows
    before = len(rows)
    grouped = aggregate_chart_data(rows, x_key, y_keys, mapping.aggregation, percentile=mapping.percentile)
    logger.debug("Grouped %d rows by %r into %d rows (%s).", before, x_key, len(grouped), mapping.aggregation)
    return grouped


def _bar(rows: Rows, mapping: FieldMapping) -> Rows:
    grouped = _grouped(rows, mapping)
    if not mapping.sort_by:
        return grouped
    return rank_rows(grouped, mapping.sort_by, sort_order=mapping.sort_order, limit=mapping.limit)


def _combo(rows: Rows, mapping: FieldMapping) -> Rows:
    grouped = _grouped(rows, mapping)
    keys = (*(mapping.y_axis1 or ()), *(mapping.y_axis2 or ()))
    if not keys:
        return grouped
    return [_coerce_keys(row, keys) for row in grouped]


def _scatter(rows: Rows, mapping: FieldMapping) -> Rows:
    fallback = tuple(rows[0].keys()) if rows else ()
    keys = resolve_keys("scatter", mapping, fallback=fallback)
    numeric = [key for key in (*keys[:2], mapping.size) if key]
    return [_coerce_keys(row, numeric) for row in rows]


def _treemap(rows: Rows, mapping: FieldMapping) -> Rows:
    if not (mapping.aggregation and mapping.category and mapping.value):
        return rows
    return aggregate_chart_data(
        rows,
        mapping.category,
        (mapping.value,),
        mapping.aggregation,
        percentile=mapping.percentile,
    )


def _heatmap(rows: Rows, mapping: FieldMapping) -> Rows:
    if not (mapping.aggregation and mapping.x_axis and mapping.y_axis and mapping.value):
        return rows
    y_key = mapping.y_axis[0]
    cells = aggregate_heatmap(
        rows,
        mapping.x_axis,
        y_key,
        mapping.value,
        mapping.aggregation,
        percentile=mapping.percentile,
    )
    return collapse_heatmap(cells, mapping.x_axis, y_key, mapping.value)


CHART_VARIANTS: Final[dict[str, ChartVariant]] = {
    "line": ChartVariant(uses_all_rows=False, transform=_grouped),
    "bar": ChartVariant(uses_all_rows=False, transform=_bar),
    "area": ChartVariant(uses_all_rows=False, transform=_grouped),
    "combo": ChartVariant(uses_all_rows=False, transform=_combo),
    "pie": ChartVariant(uses_all_rows=False, transform=_passthrough),
    "scatter": ChartVariant(uses_all_rows=False, transform=_scatter),
    "heatmap": ChartVariant(uses_all_rows=True, transform=_heatmap),
    "scorecard": ChartVariant(uses_all_rows=True, transform=_passthrough),
    "gauge": ChartVariant(uses_all_rows=True, transform=_passthrough),
    "treemap": ChartVariant(uses_all_rows=True, transform=_treemap),
    "table": ChartVariant(uses_all_rows=False, transform=_passthrough),
    "waterfall": ChartVariant(uses_all_rows=False, transform=_passthrough),
    "funnel": ChartVariant(uses_all_rows=False, transform=_passthrough),
    "cohort": ChartVariant(uses_all_rows=False, transform=_passthrough),
    "bullet": ChartVariant(uses_all_rows=False, transform=_passthrough),
    "sankey": ChartVariant(uses_all_rows=False, transform=_passthrough),
    "sparkline": ChartVariant(uses_all_rows=False, transform=_passthrough),
}


def get_variant(chart_type: ChartType | str) -> ChartVariant:
    """Return the registered variant for a chart type.

    Raises:
        ValueError: If the chart type is unknown.
    """

    variant = CHART_VARIANTS.get(chart_type)
    if variant is None:
        raise ValueError(f"Unsupported chart type: {chart_type!r}")
    return variant


def aggregate(
    chart_type: ChartType | str,
    rows: Sequence[Mapping[str, Any]],
    mapping: FieldMapping,
    *,
    title: str = "",
) -> Rows:
    """Produce the rows a chart renders.

    Steps, in order: row cap (for types that do not need the whole dataset),
    formula evaluation for formula scorecards, chronological sort on a date
    X key, then the chart type's own transform.

    Args:
        chart_type: Chart type being rendered.
        rows: Filtered rows.
        mapping: Effective (merged) field mapping.
        title: Chart title, used in log messages only.

    Returns:
        New list of rows; inputs are never mutated.

    Raises:
        ValueError: If the chart type is unknown.
    """

    variant = get_variant(chart_type)
    if not rows:
        return []

    working: Rows = [dict(row) for row in rows]
    if not variant.uses_all_rows and len(working) > MAX_RENDER_ROWS:
        logger.debug("%s: capping %d rows at %d.", title or chart_type, len(working), MAX_RENDER_ROWS)
        working = working[:MAX_RENDER_ROWS]

    if chart_type == "scorecard" and mapping.formula and mapping.formula_alias:
        working = _formula_scorecard(working, mapping, title)

    x_key = mapping.x_key
    if x_key and working and is_valid_date(working[0].get(x_key)):
        working = sort_by_date(working, x_key)

    result = variant.transform(working, mapping)
    logger.debug("%s: aggregated %d rows into %d.", title or chart_type, len(rows), len(result))
    return result


def sort_by_date(rows: Rows, key: str) -> Rows:
    """Stable ascending sort by a date column; unparseable dates sort last."""

    def sort_key(row: Mapping[str, Any]) -> tuple[int, datetime]:
        moment = parse_date_value(row.get(key))
        return (0, moment) if moment is not None else (1, datetime.min)

    return sorted(rows, key=sort_key)


def _formula_scorecard(rows: Rows, mapping: FieldMapping, title: str) -> Rows:
    """Replace the working set with the formula's single aggregated value."""

    alias = mapping.formula_alias or ""
    aggregate_first = True if mapping.formula_aggregate_first is None else mapping.formula_aggregate_first
    try:
        computed = calculate_formula(
            rows,
            mapping.formula or "",
            alias,
            aggregate_first=aggregate_first,
            round_digits=mapping.formula_round,
        )
    except FormulaError:
        logger.exception("%s: formula %r failed; keeping source rows.", title or "scorecard", mapping.formula)
        return rows
    value = computed[0].get(alias) if computed else None
    return [{alias: value, "_calculationType": "formula"}]


def _coerce_keys(row: Mapping[str, Any], keys: Sequence[str]) -> dict[str, Any]:
    coerced = dict(row)
    for key in keys:
        if key in coerced:
            coerced[key] = coerce_number_or_zero(coerced[key])
    return coerced
