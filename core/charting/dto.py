"""DTOs produced by the responsive layout engine.

These are plain frozen dataclasses consumed by chart renderers. They carry
pixel values and feature flags only, never drawing instructions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Union

LabelRotation = Literal["auto", "horizontal", "diagonal", "vertical"]
AxisInterval = Union[int, Literal["preserveStartEnd"]]


@dataclass(frozen=True, slots=True)
class ChartMinimum:
    """Smallest container a chart type renders properly in."""

    width: float
    height: float


@dataclass(frozen=True, slots=True)
class Breakpoints:
    """Container widths at which responsive features switch on."""

    small: float = 250
    medium: float = 350
    large: float = 500


@dataclass(frozen=True, slots=True)
class ChartProfiles:
    """Per-chart-type minimums plus responsive breakpoints.

    Args:
        minimums: Minimum container size per chart type.
        breakpoints: Responsive breakpoints.
        fallback_type: Chart type whose minimum applies to unlisted types.
    """

    minimums: dict[str, ChartMinimum]
    breakpoints: Breakpoints
    fallback_type: str = "bar"

    def minimum_for(self, chart_type: str) -> ChartMinimum:
        """Return the minimum for a chart type, falling back to `fallback_type`."""

        return self.minimums.get(chart_type) or self.minimums[self.fallback_type]


@dataclass(frozen=True, slots=True)
class ContainerSizing:
    """Effective container size after applying chart minimums.

    Args:
        width: Effective width (never below the chart minimum).
        height: Effective height (never below the chart minimum).
        meets_minimums: True when the measured container met both minimums.
        is_constrained: True when either measured dimension fell short.
    """

    width: float
    height: float
    meets_minimums: bool
    is_constrained: bool


@dataclass(frozen=True, slots=True)
class ResponsiveFeatures:
    """Feature flags derived from the effective container width."""

    show_legend: bool
    show_grid: bool
    show_secondary_labels: bool
    show_primary_labels: bool
    use_fallback_view: bool


@dataclass(frozen=True, slots=True)
class AxisLayout:
    """Axis label rotation, chart margins and tick interval."""

    rotation: int = 0
    bottom_margin: float = 40
    left_margin: float = 40
    right_margin: float = 20
    top_margin: float = 20
    x_axis_interval: AxisInterval = "preserveStartEnd"


@dataclass(frozen=True, slots=True)
class TruncatedLabel:
    """A label fitted to a pixel width."""

    text: str
    is_truncated: bool


@dataclass(frozen=True, slots=True)
class AxisLabels:
    """Axis titles after truncation, with the untruncated originals."""

    x: str = ""
    y: str = ""
    x_truncated: bool = False
    y_truncated: bool = False
    x_original: str = ""
    y_original: str = ""


@dataclass(frozen=True, slots=True)
class ChartLayout:
    """Everything the renderer needs besides the rows themselves."""

    sizing: ContainerSizing
    features: ResponsiveFeatures
    axis: AxisLayout
    labels: AxisLabels
