"""Configuration checks for chart field mappings.

An unconfigured or partially configured chart is not an error: callers use
the result to render a placeholder instead of a broken chart.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Final

from .aggregations import SUPPORTED_METHODS
from .dto import ChartType
from .mapping import FieldMapping

_REQUIRED_ROLES: Final[dict[str, tuple[tuple[str, ...], ...]]] = {
    # Each entry lists alternatives per requirement: any one role satisfies it.
    "line": (("x_axis", "category"),),
    "bar": (("x_axis", "category"),),
    "area": (("x_axis", "category"), ("y_axis", "y_axis1", "values")),
    "scatter": (("x_axis", "category"), ("y_axis", "y_axis1", "values")),
    "pie": (("category",),),
    "scorecard": (("metric", "formula"),),
    "table": (("columns", "y_axis"),),
    "combo": (("x_axis",), ("y_axis", "y_axis1")),
    "waterfall": (("category",), ("value",)),
    "funnel": (("stage",), ("value",)),
    "heatmap": (("x_axis",), ("y_axis",), ("value",)),
    "gauge": (("metric",),),
    "cohort": (("cohort",), ("period",), ("value",)),
    "bullet": (("actual",), ("comparative",)),
    "treemap": (("category",), ("value",)),
    "sankey": (("source",), ("target_node",), ("value",)),
    "sparkline": (("trend",),),
}


@dataclass(frozen=True, slots=True)
class MappingValidationResult:
    """Configuration state of a chart mapping.

    Args:
        is_configured: True when every required role is assigned.
        missing: Requirements that are not satisfied, as `a|b` alternatives.
        warnings: Non-fatal notes intended for UI display.
    """

    is_configured: bool
    missing: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


def validate_mapping(chart_type: ChartType, mapping: FieldMapping) -> MappingValidationResult:
    """Check whether a chart has the roles its type needs.

    Args:
        chart_type: Chart type being rendered.
        mapping: Effective (merged) mapping.

    Returns:
        MappingValidationResult; unknown chart types count as configured.
    """

    if mapping.is_empty():
        return MappingValidationResult(is_configured=False, missing=("mapping",))

    warnings: list[str] = []
    missing: list[str] = []
    for alternatives in _REQUIRED_ROLES.get(chart_type, ()):
        if not any(getattr(mapping, role) for role in alternatives):
            missing.append("|".join(alternatives))

    if chart_type == "scorecard" and mapping.formula and not mapping.formula_alias:
        warnings.append("Scorecard formula has no alias; the formula is ignored.")
    if mapping.limit is not None and mapping.limit <= 0:
        warnings.append(f"Ignoring non-positive limit: {mapping.limit}.")
    if mapping.sort_order is not None and mapping.sort_order not in ("asc", "desc"):
        warnings.append(f"Unknown sort order {mapping.sort_order!r}; treating as descending.")
    if mapping.aggregation and mapping.aggregation not in SUPPORTED_METHODS:
        warnings.append(f"Unknown aggregation {mapping.aggregation!r}; using sum.")
    if mapping.percentile is not None and not math.isfinite(mapping.percentile):
        warnings.append(f"Ignoring non-finite percentile {mapping.percentile}; using 50.")

    return MappingValidationResult(
        is_configured=not missing,
        missing=tuple(missing),
        warnings=tuple(warnings),
    )
