"""Responsive layout: container sizing, feature flags, axis margins and titles.

All functions are pure. They take the measured container size (already
debounced, see `core.charting.debounce`) and the rows/keys produced by the
analysis pipeline, and return layout DTOs for the renderer.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from typing import Any, Final

from analysis.mapping import FieldMapping
from analysis.numbers import parse_float_prefix

from .dto import (
    AxisInterval,
    AxisLabels,
    AxisLayout,
    Breakpoints,
    ChartLayout,
    ChartProfiles,
    ContainerSizing,
    LabelRotation,
    ResponsiveFeatures,
)
from .text_metrics import LABEL_FONT_SIZE, TextMeasurer, truncate_label

LABEL_SAMPLE_SIZE: Final[int] = 15
LABEL_PADDING: Final[float] = 8
ROTATED_LABEL_SPACE: Final[float] = 45
LONG_LABEL_CHARS: Final[int] = 12
DEFAULT_AXIS_LAYOUT: Final[AxisLayout] = AxisLayout()


def compute_container_sizing(
    chart_type: str,
    width: float,
    height: float,
    profiles: ChartProfiles,
) -> ContainerSizing:
    """Apply per-chart-type minimums to a measured container size.

    Pie charts are squared to the smaller side when the container meets the
    minimums.

    Args:
        chart_type: Chart type being rendered.
        width: Measured container width in pixels.
        height: Measured container height in pixels.
        profiles: Chart minimums and breakpoints.

    Returns:
        ContainerSizing.
    """

    minimum = profiles.minimum_for(chart_type)
    meets_width = width >= minimum.width
    meets_height = height >= minimum.height
    effective_width = max(width, minimum.width)
    effective_height = max(height, minimum.height)

    if chart_type == "pie" and meets_width and meets_height:
        side = min(effective_width, effective_height)
        effective_width = effective_height = side

    return ContainerSizing(
        width=effective_width,
        height=effective_height,
        meets_minimums=meets_width and meets_height,
        is_constrained=not (meets_width and meets_height),
    )


def compute_responsive_features(sizing: ContainerSizing, breakpoints: Breakpoints) -> ResponsiveFeatures:
    """Derive feature flags from the effective container width."""

    width = sizing.width
    return ResponsiveFeatures(
        show_legend=width >= breakpoints.medium,
        show_grid=width >= breakpoints.medium,
        show_secondary_labels=width >= breakpoints.large,
        show_primary_labels=width >= breakpoints.small,
        use_fallback_view=width < breakpoints.small,
    )


def compute_axis_layout(
    rows: Sequence[Mapping[str, Any]],
    keys: Sequence[str],
    sizing: ContainerSizing,
    features: ResponsiveFeatures,
    measurer: TextMeasurer,
    *,
    label_rotation: LabelRotation | str | None = None,
) -> AxisLayout:
    """Compute label rotation, margins and tick interval for a cartesian chart.

    Args:
        rows: Rows being plotted.
        keys: Ordered data keys, X key first.
        sizing: Effective container size.
        features: Responsive feature flags.
        measurer: Text measurer.
        label_rotation: `horizontal`, `diagonal`, `vertical`, or automatic
            when omitted.

    Returns:
        AxisLayout; the default layout when there is nothing to label or
        primary labels are hidden.
    """

    if not rows or not keys or not features.show_primary_labels:
        return DEFAULT_AXIS_LAYOUT

    row_count = len(rows)
    labels = [_label_text(row.get(keys[0])) for row in rows[:LABEL_SAMPLE_SIZE]]
    widths = [measurer.measure(label, LABEL_FONT_SIZE) for label in labels]
    max_width = max(widths, default=0.0)
    avg_width = sum(widths) / len(widths) if widths else 0.0
    max_chars = max((len(label) for label in labels), default=0)

    rotation = 0
    bottom = 50.0
    left = 50.0
    right = 20.0
    top = 20.0
    available = sizing.width - left - right

    if label_rotation == "horizontal":
        rotation, bottom = 0, 50.0
    elif label_rotation == "diagonal":
        rotation, bottom = -45, min(max(60.0, max_width * 0.7), 100.0)
    elif label_rotation == "vertical":
        rotation, bottom = -90, min(max(70.0, max_width + 10), 120.0)
    else:
        fits = math.floor(available / (avg_width + LABEL_PADDING))
        if row_count > fits or max_width > available / row_count:
            if max_chars > LONG_LABEL_CHARS:
                rotation, bottom = -45, min(max(70.0, max_width * 0.7), 100.0)
            else:
                rotation, bottom = -30, min(max(60.0, max_width * 0.5), 80.0)

    if len(keys) > 1:
        values = [_axis_number(row.get(keys[1])) for row in rows]
        if values:
            value_width = max(
                measurer.measure(format_axis_value(max(values)), LABEL_FONT_SIZE),
                measurer.measure(format_axis_value(min(values)), LABEL_FONT_SIZE),
            )
            left = max(left, value_width + 15)

    interval: AxisInterval = 0
    if available > 0:
        label_space = avg_width + LABEL_PADDING if rotation == 0 else ROTATED_LABEL_SPACE
        max_labels = math.floor(available / label_space)
        if row_count > max_labels > 2:
            interval = max(1, math.ceil(row_count / max_labels) - 1)
        elif row_count > max_labels:
            interval = "preserveStartEnd"

    return AxisLayout(
        rotation=rotation,
        bottom_margin=min(bottom, max(sizing.height * 0.25, 80.0)),
        left_margin=min(left, sizing.width * 0.2),
        right_margin=right,
        top_margin=max(top, 40.0) if features.show_legend else top,
        x_axis_interval=interval,
    )


def compute_axis_labels(
    keys: Sequence[str],
    sizing: ContainerSizing,
    features: ResponsiveFeatures,
    measurer: TextMeasurer,
    *,
    mapping: FieldMapping | None = None,
    axis_titles: Mapping[str, str] | None = None,
) -> AxisLabels:
    """Resolve and truncate the X/Y axis titles.

    Titles come from explicit `axis_titles`, else the mapping's X axis and
    joined Y axis, else the data keys (`Value` when there is no Y key). Each is
    truncated to `max(100, 30% of the container width)`.
    """

    if not keys or not features.show_primary_labels:
        return AxisLabels()

    titles = axis_titles or {}
    x_title = titles.get("x") or (mapping.x_axis if mapping else None) or keys[0] or ""
    y_title = titles.get("y") or (", ".join(mapping.y_axis) if mapping and mapping.y_axis else None)
    if not y_title:
        y_title = keys[1] if len(keys) > 1 else "Value"

    max_width = max(100.0, sizing.width * 0.3)
    x_label = truncate_label(x_title, max_width, measurer)
    y_label = truncate_label(y_title, max_width, measurer)
    return AxisLabels(
        x=x_label.text,
        y=y_label.text,
        x_truncated=x_label.is_truncated,
        y_truncated=y_label.is_truncated,
        x_original=x_title,
        y_original=y_title,
    )


def format_axis_value(value: float) -> str:
    """Format a tick value with thousands separators and up to 3 decimals."""

    if value == int(value):
        return f"{int(value):,}"
    return f"{value:,.3f}".rstrip("0").rstrip(".")


def _label_text(value: object) -> str:
    if value is None or value == "" or value is False or value == 0:
        return ""
    return str(value)


def _axis_number(value: object) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    parsed = parse_float_prefix(str(value).strip()) if value is not None else None
    return parsed if parsed is not None and math.isfinite(parsed) else 0.0


def compute_chart_layout(
    chart_type: str,
    rows: Sequence[Mapping[str, Any]],
    keys: Sequence[str],
    width: float,
    height: float,
    *,
    profiles: ChartProfiles,
    measurer: TextMeasurer,
    mapping: FieldMapping | None = None,
    label_rotation: LabelRotation | str | None = None,
    axis_titles: Mapping[str, str] | None = None,
) -> ChartLayout:
    """Run every layout step for one chart and one settled container size."""

    sizing = compute_container_sizing(chart_type, width, height, profiles)
    features = compute_responsive_features(sizing, profiles.breakpoints)
    axis = compute_axis_layout(rows, keys, sizing, features, measurer, label_rotation=label_rotation)
    labels = compute_axis_labels(keys, sizing, features, measurer, mapping=mapping, axis_titles=axis_titles)
    return ChartLayout(sizing=sizing, features=features, axis=axis, labels=labels)
