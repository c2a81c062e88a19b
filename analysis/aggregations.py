"""Aggregation helpers for the chart data pipeline.

This module provides deterministic, reusable aggregation functions shared by
the 1-D grouped path (line/bar/area/combo/treemap), the heatmap path and
scorecards, without introducing Django dependencies.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime
from statistics import median, mode, pstdev, pvariance
from typing import Any, Final

from .dto import AggregationMethod
from .numbers import parse_numeric_value

logger = logging.getLogger(__name__)

SUPPORTED_METHODS: Final[frozenset[str]] = frozenset(
    {
        "sum",
        "avg",
        "count",
        "min",
        "max",
        "distinct",
        "median",
        "mode",
        "std",
        "variance",
        "percentile",
        "first",
        "last",
    }
)


def aggregate_values(
    values: Sequence[float],
    method: AggregationMethod | str,
    *,
    percentile: float | None = None,
) -> float | None:
    """Reduce numeric values with an aggregation method.

    Args:
        values: Numeric values (already parsed; no None entries).
        method: Aggregation method name. Unknown names log a warning and
            aggregate with `sum`.
        percentile: Percentile rank for `percentile` (0-100, default 50).

    Returns:
        The aggregate, or None when `values` is empty.
    """

    if not values:
        return None

    if method not in SUPPORTED_METHODS:
        logger.warning("Unsupported aggregation method %r; aggregating with sum.", method)
        method = "sum"

    if method == "sum":
        return float(sum(values))
    if method == "avg":
        return sum(values) / len(values)
    if method == "count":
        return float(len(values))
    if method == "min":
        return float(min(values))
    if method == "max":
        return float(max(values))
    if method == "distinct":
        return float(len(set(values)))
    if method == "median":
        return float(median(values))
    if method == "mode":
        return float(mode(values))
    if method == "std":
        return float(pstdev(values))
    if method == "variance":
        return float(pvariance(values))
    if method == "percentile":
        return percentile_value(values, 50.0 if percentile is None else percentile)
    if method == "first":
        return float(values[0])
    return float(values[-1])


def percentile_value(values: Sequence[float], rank: float) -> float:
    """Compute a linearly interpolated percentile.

    Args:
        values: Non-empty numeric values.
        rank: Percentile rank; values outside 0-100 are clamped and
            non-finite values fall back to 50, both with a warning.

    Returns:
        The interpolated percentile value.
    """

    if not math.isfinite(rank):
        logger.warning("Percentile %s is not a finite number; using 50.", rank)
        rank = 50.0
    elif rank < 0 or rank > 100:
        logger.warning("Percentile %s outside 0-100; clamping.", rank)
        rank = max(0.0, min(100.0, rank))

    ordered = sorted(values)
    index = (rank / 100) * (len(ordered) - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    if lower == upper:
        return float(ordered[lower])
    weight = index - lower
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def numeric_column(rows: Iterable[Mapping[str, Any]], column: str) -> list[float]:
    """Extract parseable numeric values of a column, skipping the rest."""

    extracted: list[float] = []
    for row in rows:
        value = parse_numeric_value(row.get(column))
        if value is not None:
            extracted.append(value)
    return extracted


def aggregate_chart_data(
    rows: Sequence[Mapping[str, Any]],
    x_key: str,
    y_keys: Sequence[str],
    method: AggregationMethod | str = "sum",
    *,
    percentile: float | None = None,
) -> list[dict[str, Any]]:
    """Group rows by an X key and aggregate each Y key per group.

    Args:
        rows: Input rows.
        x_key: Column to group by; rows with a null X value are dropped.
        y_keys: Columns to aggregate with `method`.
        method: Aggregation method applied to every Y key.
        percentile: Percentile rank for `percentile`.

    Returns:
        One row per distinct `cell_text(x)` in first-seen order. The X value and
        other passthrough columns come from the group's first row; a Y key
        with no numeric values in a group becomes None.
    """

    if not rows or not x_key or not y_keys:
        return [dict(row) for row in rows]

    groups: dict[str, list[Mapping[str, Any]]] = {}
    for row in rows:
        x_value = row.get(x_key)
        if x_value is None:
            continue
        groups.setdefault(cell_text(x_value), []).append(row)

    y_set = set(y_keys)
    aggregated: list[dict[str, Any]] = []
    for group_rows in groups.values():
        first = group_rows[0]
        out: dict[str, Any] = {x_key: first.get(x_key)}
        for key, value in first.items():
            if key == x_key or key in y_set:
                continue
            out[key] = value
        for y_key in y_keys:
            out[y_key] = aggregate_values(numeric_column(group_rows, y_key), method, percentile=percentile)
        aggregated.append(out)
    return aggregated


def cell_text(value: object) -> str:
    """Render a cell value as text the way the dashboard displays it.

    Integral floats drop their fraction so `1` and `1.0` share a group.
    """

    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
