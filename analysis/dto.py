"""DTO types shared by the chart data pipeline.

DTOs are plain data containers passed between pipeline stages and to the
layout engine. They intentionally avoid any Django/ORM dependencies.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Literal, Union

Scalar = Union[str, int, float, bool, date, datetime, None]
Row = Mapping[str, Any]

ChartType = Literal[
    "line",
    "bar",
    "area",
    "combo",
    "pie",
    "scatter",
    "heatmap",
    "scorecard",
    "gauge",
    "treemap",
    "table",
    "waterfall",
    "funnel",
    "cohort",
    "bullet",
    "sankey",
    "sparkline",
]

AggregationMethod = Literal[
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
]

Granularity = Literal["day", "week", "month", "quarter", "year"]
ChartFilterType = Literal["date_aggregation", "categorical", "numeric_range"]
FilterOperator = Literal["equals", "contains", "greater_than", "less_than", "between", "in"]
SortOrder = Literal["asc", "desc"]


@dataclass(frozen=True, slots=True)
class ChartFilter:
    """A filter scoped to a single chart.

    Args:
        id: Stable filter identifier.
        type: Filter kind.
        column: Column the filter inspects.
        is_active: Inactive filters never affect output.
        date_granularity: Bucket size for `date_aggregation` filters.
        selected_values: Allowed values for `categorical` filters.
        min: Optional inclusive lower bound for `numeric_range` filters.
        max: Optional inclusive upper bound for `numeric_range` filters.
    """

    id: str
    type: ChartFilterType
    column: str
    is_active: bool = True
    date_granularity: Granularity | None = None
    selected_values: tuple[str, ...] = ()
    min: float | None = None
    max: float | None = None


@dataclass(frozen=True, slots=True)
class DashboardFilter:
    """A filter applied to every chart on the dashboard.

    Args:
        id: Stable filter identifier.
        type: Free-form filter kind reported by the filter panel.
        column: Column the filter inspects.
        operator: Comparison operator.
        value: Operand; a `[min, max]` pair for `between`, a list for `in`.
        is_active: Inactive filters never affect output.
    """

    id: str
    column: str
    operator: FilterOperator
    value: Any
    type: str = "value"
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class DateWindow:
    """An inclusive, day-granular date window shared by all charts."""

    from_date: date | None = None
    to_date: date | None = None

    @property
    def is_active(self) -> bool:
        """Return True when either bound is set."""

        return self.from_date is not None or self.to_date is not None

    def contains(self, day: date) -> bool:
        """Return True when `day` falls within the inclusive bounds."""

        if self.from_date is not None and day < self.from_date:
            return False
        if self.to_date is not None and day > self.to_date:
            return False
        return True


@dataclass(frozen=True, slots=True)
class DualAxisConfig:
    """Left/right Y-axis assignment for charts mixing series magnitudes."""

    left_metrics: tuple[str, ...]
    right_metrics: tuple[str, ...]
    left_label: str
    right_label: str


@dataclass(frozen=True, slots=True)
class FilterResult:
    """Rows produced by the Row Filter plus the date column it resolved.

    Args:
        rows: Filtered (and possibly bucketed) rows.
        date_column: Date column used for the window, when one was resolved.
            Callers persist an auto-selected column for later passes.
        bucketed: True when granularity bucketing was applied.
    """

    rows: list[dict[str, Any]]
    date_column: str | None = None
    bucketed: bool = False
