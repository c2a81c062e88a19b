"""Service-layer functions for the core app.

Services in `core` bind Django settings (profiles file, font, cache size,
debounce period) to the pure analysis and layout modules, and shape their
results into the camelCase JSON the dashboard consumes.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import asdict
from functools import lru_cache
from typing import Any

from django.conf import settings

from analysis.dto import DualAxisConfig
from analysis.pipeline import ChartPass, ChartPassCache
from core.charting.debounce import ResizeDebouncer
from core.charting.dto import ChartLayout, ChartProfiles, TruncatedLabel
from core.charting.profiles import load_chart_profiles
from core.charting.responsive import compute_chart_layout
from core.charting.text_metrics import PillowTextMeasurer, truncate_label

logger = logging.getLogger(__name__)

_PASS_CACHE: ChartPassCache | None = None
_PASS_CACHE_LOCK = threading.Lock()


def chart_profiles() -> ChartProfiles:
    """Return chart minimums and breakpoints from `settings.CHART_PROFILES_FILE`."""

    return load_chart_profiles(settings.CHART_PROFILES_FILE)


@lru_cache(maxsize=4)
def _measurer_for(font_path: str | None) -> PillowTextMeasurer:
    return PillowTextMeasurer(font_path)


def text_measurer() -> PillowTextMeasurer:
    """Return the shared measurer for `settings.CHART_FONT_PATH`."""

    return _measurer_for(settings.CHART_FONT_PATH)


def pass_cache() -> ChartPassCache:
    """Return the process-wide chart pass cache, creating it on first use."""

    global _PASS_CACHE
    with _PASS_CACHE_LOCK:
        if _PASS_CACHE is None:
            _PASS_CACHE = ChartPassCache(max_entries=settings.CHART_PASS_CACHE_SIZE)
        return _PASS_CACHE


def reset_pass_cache() -> None:
    """Discard the process-wide cache so the next call rebuilds it from settings."""

    global _PASS_CACHE
    with _PASS_CACHE_LOCK:
        _PASS_CACHE = None


def resize_debouncer() -> ResizeDebouncer:
    """Return a new debouncer using `settings.CHART_RESIZE_DEBOUNCE_MS`."""

    return ResizeDebouncer(quiet_ms=settings.CHART_RESIZE_DEBOUNCE_MS)


def render_chart(cleaned: dict[str, Any]) -> dict[str, Any]:
    """Run the data pipeline and the layout engine for one validated request.

    Args:
        cleaned: `ChartRenderForm.cleaned_data`.

    Returns:
        JSON-ready payload with rows, keys, dual-axis split and layout.
    """

    chart_type = cleaned["chartType"]
    title = cleaned.get("title") or ""
    chart_pass = pass_cache().run(
        chart_type,
        cleaned.get("rows") or [],
        suggested_mapping=cleaned.get("suggestedMapping"),
        mapping=cleaned.get("mapping"),
        chart_filters=cleaned.get("chartFilters") or (),
        dashboard_filters=cleaned.get("dashboardFilters") or (),
        date_window=cleaned.get("dateWindow"),
        date_column=cleaned.get("dateColumn"),
        granularity=cleaned.get("granularity"),
        schema=cleaned.get("schema"),
        title=title,
    )

    layout = compute_chart_layout(
        chart_type,
        chart_pass.rows,
        chart_pass.keys,
        cleaned["width"],
        cleaned["height"],
        profiles=chart_profiles(),
        measurer=text_measurer(),
        mapping=chart_pass.mapping,
        label_rotation=cleaned.get("labelRotation"),
        axis_titles=cleaned.get("axisLabels") or None,
    )
    logger.debug(
        "%s: rendered %d rows at %sx%s.",
        title or chart_type,
        len(chart_pass.rows),
        layout.sizing.width,
        layout.sizing.height,
    )
    return {"ok": True, **serialize_pass(chart_pass), **serialize_layout(layout)}


def truncate(text: str, max_width: float) -> TruncatedLabel:
    """Fit `text` into `max_width` pixels with the configured font."""

    return truncate_label(text, max_width, text_measurer())


def serialize_pass(chart_pass: ChartPass) -> dict[str, Any]:
    """Convert a chart pass to camelCase JSON."""

    validation = chart_pass.validation
    return {
        "status": chart_pass.status,
        "chartType": chart_pass.chart_type,
        "dateColumn": chart_pass.date_column,
        "bucketed": chart_pass.bucketed,
        "rows": chart_pass.rows,
        "keys": list(chart_pass.keys),
        "dualAxis": _serialize_dual_axis(chart_pass.dual_axis),
        "missing": list(validation.missing) if validation else [],
        "warnings": list(validation.warnings) if validation else [],
    }


def serialize_layout(layout: ChartLayout) -> dict[str, Any]:
    """Convert a chart layout to camelCase JSON."""

    sizing = layout.sizing
    features = layout.features
    axis = layout.axis
    labels = layout.labels
    return {
        "sizing": {
            "width": sizing.width,
            "height": sizing.height,
            "meetsMinimums": sizing.meets_minimums,
            "isConstrained": sizing.is_constrained,
        },
        "features": {
            "showLegend": features.show_legend,
            "showGrid": features.show_grid,
            "showSecondaryLabels": features.show_secondary_labels,
            "showPrimaryLabels": features.show_primary_labels,
            "useFallbackView": features.use_fallback_view,
        },
        "layout": {
            "rotation": axis.rotation,
            "bottomMargin": axis.bottom_margin,
            "leftMargin": axis.left_margin,
            "rightMargin": axis.right_margin,
            "topMargin": axis.top_margin,
            "xAxisInterval": axis.x_axis_interval,
        },
        "axisLabels": {
            "x": labels.x,
            "y": labels.y,
            "xTruncated": labels.x_truncated,
            "yTruncated": labels.y_truncated,
            "xOriginal": labels.x_original,
            "yOriginal": labels.y_original,
        },
        "resizeDebounceMs": settings.CHART_RESIZE_DEBOUNCE_MS,
    }


def _serialize_dual_axis(config: DualAxisConfig | None) -> dict[str, Any] | None:
    if config is None:
        return None
    raw = asdict(config)
    return {
        "leftMetrics": list(raw["left_metrics"]),
        "rightMetrics": list(raw["right_metrics"]),
        "leftLabel": raw["left_label"],
        "rightLabel": raw["right_label"],
    }
