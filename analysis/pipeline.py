"""One render pass: Row Filter -> Aggregation Engine -> Dual-Axis Reconciler.

`run_chart_pass` is the pure entry point used by the HTTP layer. Layout
(container sizing, axis margins, label truncation) is computed afterwards by
`core.charting.responsive` from the pass output.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import OrderedDict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass, field, is_dataclass
from hashlib import sha256
from typing import Any, Literal

from .dto import ChartFilter, ChartType, DashboardFilter, DateWindow, DualAxisConfig, Granularity
from .dual_axis import detect_dual_axis
from .engine import aggregate, get_variant
from .filters import SchemaLike, filter_rows
from .mapping import FieldMapping, merge_mappings, resolve_keys
from .validation import MappingValidationResult, validate_mapping

logger = logging.getLogger(__name__)

PassStatus = Literal["ok", "empty", "unconfigured"]


@dataclass(frozen=True, slots=True)
class ChartPass:
    """Output of one pipeline run for a single chart.

    Args:
        chart_type: Chart type rendered.
        status: `ok`, `empty` (no rows survived filtering) or `unconfigured`
            (required mapping roles are missing; render a placeholder).
        rows: Rows to plot.
        keys: Ordered data keys, X key first.
        dual_axis: Left/right axis split, when needed.
        validation: Mapping validation result.
        mapping: Effective mapping after merging suggestion and override.
        date_column: Date column used by the date window, if any.
        bucketed: True when granularity bucketing was applied.
    """

    chart_type: str
    status: PassStatus
    rows: list[dict[str, Any]] = field(default_factory=list)
    keys: tuple[str, ...] = ()
    dual_axis: DualAxisConfig | None = None
    validation: MappingValidationResult | None = None
    mapping: FieldMapping = field(default_factory=FieldMapping)
    date_column: str | None = None
    bucketed: bool = False


def run_chart_pass(
    chart_type: ChartType | str,
    rows: Sequence[Mapping[str, Any]],
    *,
    suggested_mapping: FieldMapping | None = None,
    mapping: FieldMapping | None = None,
    chart_filters: Iterable[ChartFilter] = (),
    dashboard_filters: Iterable[DashboardFilter] = (),
    date_window: DateWindow | None = None,
    date_column: str | None = None,
    granularity: Granularity | None = None,
    schema: SchemaLike | None = None,
    title: str = "",
) -> ChartPass:
    """Filter, aggregate and reconcile axes for one chart.

    Args:
        chart_type: Chart type to render.
        rows: Raw dataset rows.
        suggested_mapping: System-suggested field mapping.
        mapping: User override; every field it sets wins.
        chart_filters: The chart's own filters.
        dashboard_filters: Dashboard-wide filters.
        date_window: Inclusive date window.
        date_column: Selected date column (auto-detected when omitted).
        granularity: Dashboard granularity selector.
        schema: Dataset schema for chart-level date aggregation.
        title: Chart title for log messages.

    Returns:
        ChartPass. Configuration gaps are reported through `status`, not raised.

    Raises:
        ValueError: If the chart type is unknown.
    """

    get_variant(chart_type)
    effective = merge_mappings(suggested_mapping, mapping)
    validation = validate_mapping(chart_type, effective)  # type: ignore[arg-type]
    if not validation.is_configured:
        logger.info("%s: chart is not configured (missing %s).", title or chart_type, ", ".join(validation.missing))
        return ChartPass(
            chart_type=chart_type,
            status="unconfigured",
            validation=validation,
            mapping=effective,
            date_column=date_column,
        )

    filtered = filter_rows(
        rows,
        chart_filters=tuple(chart_filters),
        dashboard_filters=tuple(dashboard_filters),
        date_window=date_window,
        date_column=date_column,
        granularity=granularity,
        schema=schema,
    )
    logger.debug("%s: row filter kept %d of %d rows.", title or chart_type, len(filtered.rows), len(rows))

    aggregated = aggregate(chart_type, filtered.rows, effective, title=title)
    fallback = tuple(aggregated[0].keys()) if aggregated else ()
    keys = resolve_keys(chart_type, effective, fallback=fallback)  # type: ignore[arg-type]
    dual_axis = detect_dual_axis(chart_type, keys, aggregated, effective) if aggregated else None

    return ChartPass(
        chart_type=chart_type,
        status="ok" if aggregated else "empty",
        rows=aggregated,
        keys=keys,
        dual_axis=dual_axis,
        validation=validation,
        mapping=effective,
        date_column=filtered.date_column,
        bucketed=filtered.bucketed,
    )


class ChartPassCache:
    """Memoize chart passes by a content fingerprint of their inputs.

    Entries are evicted least-recently-used once `max_entries` is exceeded.
    One instance is shared by every request thread; bookkeeping happens under
    a lock while the pass itself runs outside it.
    """

    def __init__(self, max_entries: int = 32) -> None:
        self.max_entries = max_entries
        self._entries: OrderedDict[str, ChartPass] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def run(self, chart_type: ChartType | str, rows: Sequence[Mapping[str, Any]], **options: Any) -> ChartPass:
        """Return a cached pass for identical inputs, running it otherwise.

        Args:
            chart_type: Chart type to render.
            rows: Raw dataset rows.
            **options: Keyword arguments accepted by `run_chart_pass`.
        """

        key = pass_fingerprint(chart_type, rows, **options)
        cached = self.lookup(key)
        if cached is not None:
            return cached

        result = run_chart_pass(chart_type, rows, **options)
        self.store(key, result)
        return result

    def lookup(self, key: str) -> ChartPass | None:
        """Return the pass stored under `key` and mark it recently used."""

        with self._lock:
            cached = self._entries.get(key)
            if cached is None:
                self.misses += 1
                return None
            self.hits += 1
            self._entries.move_to_end(key)
            return cached

    def store(self, key: str, chart_pass: ChartPass) -> None:
        """Insert a pass, evicting the least recently used beyond capacity."""

        with self._lock:
            self._entries[key] = chart_pass
            self._entries.move_to_end(key)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        """Drop every cached pass."""

        with self._lock:
            self._entries.clear()


def pass_fingerprint(chart_type: ChartType | str, rows: Sequence[Mapping[str, Any]], **options: Any) -> str:
    """Return a sha256 fingerprint of a chart pass's inputs."""

    payload = {
        "chart_type": chart_type,
        "rows": [dict(row) for row in rows],
        "options": {name: _jsonable(value) for name, value in options.items()},
    }
    dumped = json.dumps(payload, sort_keys=True, default=str)
    return sha256(dumped.encode("utf-8")).hexdigest()


def _jsonable(value: Any) -> Any:
    """Convert dataclasses (and sequences of them) into plain structures."""

    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value
