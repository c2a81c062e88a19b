"""Detect when a multi-series chart needs a second Y axis.

Series whose magnitudes differ by an order of magnitude are unreadable on a
shared axis. An explicit `y_axis1`/`y_axis2` assignment always wins; otherwise
bar, line and area charts with two or more value series are checked pairwise.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any, Final

from .dto import ChartType, DualAxisConfig
from .mapping import FieldMapping
from .numbers import loose_number

SCALE_RATIO_THRESHOLD: Final[float] = 10.0
AUTO_DUAL_AXIS_TYPES: Final[frozenset[str]] = frozenset({"bar", "line", "area"})


def series_max(rows: Sequence[Mapping[str, Any]], key: str) -> float:
    """Return the maximum of a series ignoring zeros and non-numeric cells.

    Returns:
        The maximum, or 0.0 when no usable value exists.
    """

    values = [loose_number(row.get(key)) for row in rows]
    usable = [value for value in values if not math.isnan(value) and value != 0]
    return max(usable) if usable else 0.0


def scales_differ(left_max: float, right_max: float) -> bool:
    """Return True when two series maxima differ by 10x or more either way."""

    ratio = left_max / (right_max or 1.0)
    return ratio >= SCALE_RATIO_THRESHOLD or ratio <= 1 / SCALE_RATIO_THRESHOLD


def detect_dual_axis(
    chart_type: ChartType | str,
    keys: Sequence[str],
    rows: Sequence[Mapping[str, Any]],
    mapping: FieldMapping | None = None,
) -> DualAxisConfig | None:
    """Decide the left/right axis split for a chart.

    Args:
        chart_type: Chart type being rendered.
        keys: Ordered data keys, X key first.
        rows: Aggregated rows.
        mapping: Effective mapping; explicit `y_axis1` and `y_axis2` are
            honored verbatim.

    Returns:
        DualAxisConfig, or None when one axis suffices.
    """

    if mapping is not None and mapping.y_axis1 and mapping.y_axis2:
        left = tuple(mapping.y_axis1)
        right = tuple(mapping.y_axis2)
        return DualAxisConfig(
            left_metrics=left,
            right_metrics=right,
            left_label=mapping.y_axis1_label or ", ".join(left),
            right_label=mapping.y_axis2_label or ", ".join(right),
        )

    if chart_type not in AUTO_DUAL_AXIS_TYPES or len(keys) < 3:
        return None

    value_keys = tuple(keys[1:])
    maxima = [series_max(rows, key) for key in value_keys]
    mismatch = any(
        scales_differ(maxima[i], maxima[j])
        for i in range(len(maxima))
        for j in range(i + 1, len(maxima))
    )
    if not mismatch:
        return None

    midpoint = math.ceil(len(value_keys) / 2)
    left = value_keys[:midpoint]
    right = value_keys[midpoint:]
    return DualAxisConfig(
        left_metrics=left,
        right_metrics=right,
        left_label=", ".join(left),
        right_label=", ".join(right),
    )
