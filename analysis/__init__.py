"""Pure chart data pipeline.

This package contains deterministic, testable computations that operate on
in-memory rows and return new rows and DTOs. It must not import Django or
perform any I/O.
"""

from .dual_axis import detect_dual_axis
from .engine import aggregate
from .filters import filter_rows
from .pipeline import ChartPass, ChartPassCache, run_chart_pass

__all__ = [
    "ChartPass",
    "ChartPassCache",
    "aggregate",
    "detect_dual_axis",
    "filter_rows",
    "run_chart_pass",
]
