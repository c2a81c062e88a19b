"""Field mappings: which dataset columns play which role in a chart.

Two mapping sources exist for every chart: the system-suggested mapping and
the user's override from the customization panel. `merge_mappings` combines
them per field with the override winning, without mutating either input.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields, replace
from typing import Any, Final

from .dto import AggregationMethod, ChartType, SortOrder


@dataclass(frozen=True, slots=True)
class FieldMapping:
    """Semantic role assignment for a single chart.

    Multi-valued roles (`y_axis`, `y_axis1`, `y_axis2`, `values`, `columns`)
    are stored as tuples; a single column is a one-element tuple.
    """

    x_axis: str | None = None
    y_axis: tuple[str, ...] | None = None
    y_axis1: tuple[str, ...] | None = None
    y_axis2: tuple[str, ...] | None = None
    y_axis1_label: str | None = None
    y_axis2_label: str | None = None
    category: str | None = None
    value: str | None = None
    values: tuple[str, ...] | None = None
    metric: str | None = None
    formula: str | None = None
    formula_alias: str | None = None
    formula_round: int | None = None
    formula_aggregate_first: bool | None = None
    sort_by: str | None = None
    sort_order: SortOrder | None = None
    limit: int | None = None
    aggregation: AggregationMethod | None = None
    percentile: float | None = None
    size: str | None = None
    color: str | None = None
    columns: tuple[str, ...] | None = None
    stage: str | None = None
    cohort: str | None = None
    period: str | None = None
    actual: str | None = None
    comparative: str | None = None
    source: str | None = None
    target_node: str | None = None
    trend: str | None = None

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "FieldMapping":
        """Build a mapping from a dashboard payload.

        Args:
            payload: Mapping using either snake_case field names or the
                dashboard's camelCase keys (`xAxis`, `formulaAlias`, ...).
                `formulaOptions` (`{round, aggregateFirst}`) is unpacked.

        Returns:
            FieldMapping with unknown keys ignored.
        """

        if not payload:
            return cls()

        raw: dict[str, Any] = {}
        for key, value in payload.items():
            name = _CAMEL_ALIASES.get(key, key)
            if name in _FIELD_NAMES:
                raw[name] = value

        options = payload.get("formulaOptions") or payload.get("formula_options")
        if isinstance(options, Mapping):
            if options.get("round") is not None:
                raw.setdefault("formula_round", options.get("round"))
            if options.get("aggregateFirst") is not None:
                raw.setdefault("formula_aggregate_first", options.get("aggregateFirst"))

        kwargs: dict[str, Any] = {}
        for name, value in raw.items():
            if value is None or value == "":
                continue
            if name in _TUPLE_FIELDS:
                kwargs[name] = _as_tuple(value)
            elif name in ("limit", "formula_round"):
                kwargs[name] = int(value)
            elif name == "percentile":
                kwargs[name] = float(value)
            elif name == "formula_aggregate_first":
                kwargs[name] = bool(value)
            else:
                kwargs[name] = str(value)
        return cls(**kwargs)

    def is_empty(self) -> bool:
        """Return True when no role is assigned."""

        return all(getattr(self, f.name) is None for f in fields(self))

    @property
    def x_key(self) -> str | None:
        """Return the grouping key: the X axis, else the category."""

        return self.x_axis or self.category

    @property
    def y_keys(self) -> tuple[str, ...]:
        """Return every value key from `y_axis`, `y_axis1`, `y_axis2`, `values`."""

        keys: list[str] = []
        for group in (self.y_axis, self.y_axis1, self.y_axis2, self.values):
            if group:
                keys.extend(group)
        return tuple(keys)


_FIELD_NAMES: Final[frozenset[str]] = frozenset(f.name for f in fields(FieldMapping))
_TUPLE_FIELDS: Final[frozenset[str]] = frozenset({"y_axis", "y_axis1", "y_axis2", "values", "columns"})
_CAMEL_ALIASES: Final[dict[str, str]] = {
    "xAxis": "x_axis",
    "yAxis": "y_axis",
    "yAxis1": "y_axis1",
    "yAxis2": "y_axis2",
    "yAxis1Label": "y_axis1_label",
    "yAxis2Label": "y_axis2_label",
    "formulaAlias": "formula_alias",
    "sortBy": "sort_by",
    "sortOrder": "sort_order",
    "targetNode": "target_node",
}


def merge_mappings(suggested: FieldMapping | None, override: FieldMapping | None) -> FieldMapping:
    """Merge a suggested mapping with a user override.

    Every field the override sets replaces the suggested value; unset
    (None) override fields leave the suggestion in place.

    Args:
        suggested: System-suggested mapping (may be None).
        override: User override mapping (may be None).

    Returns:
        A new FieldMapping; neither input is modified.
    """

    base = suggested or FieldMapping()
    if override is None:
        return base
    updates = {f.name: getattr(override, f.name) for f in fields(override) if getattr(override, f.name) is not None}
    return replace(base, **updates)


def resolve_keys(
    chart_type: ChartType,
    mapping: FieldMapping,
    *,
    fallback: Sequence[str] = (),
) -> tuple[str, ...]:
    """Resolve the ordered data keys a chart plots: `(x_key, *y_keys)`.

    Args:
        chart_type: Chart type.
        mapping: Effective (merged) mapping.
        fallback: Keys to use when the mapping does not determine them
            (typically the dataset's column order).

    Returns:
        Ordered keys; `("index",)` when nothing is known.
    """

    keys = _keys_from_mapping(chart_type, mapping)
    if keys:
        return keys
    if fallback:
        return tuple(fallback)
    return ("index",)


def _keys_from_mapping(chart_type: ChartType, mapping: FieldMapping) -> tuple[str, ...]:
    """Return mapping-derived keys for a chart type, or an empty tuple."""

    if mapping.is_empty():
        return ()

    if chart_type in ("line", "bar") and mapping.category and mapping.values:
        return (mapping.category, *mapping.values)

    if chart_type in ("line", "bar", "area", "scatter"):
        if mapping.x_axis and (mapping.y_axis1 or mapping.y_axis2):
            return (mapping.x_axis, *(mapping.y_axis1 or ()), *(mapping.y_axis2 or ()))
        if mapping.x_axis and mapping.y_axis:
            return (mapping.x_axis, *mapping.y_axis)
        return ()

    if chart_type == "pie" and mapping.category:
        return (mapping.category, mapping.value) if mapping.value else (mapping.category,)

    if chart_type == "scorecard":
        if mapping.formula and mapping.formula_alias:
            return (mapping.formula_alias,)
        if mapping.metric:
            return (mapping.metric,)
        return ()

    if chart_type == "table" and mapping.y_axis:
        return mapping.y_axis

    return ()


def _as_tuple(value: object) -> tuple[str, ...]:
    """Normalize a single column or a list of columns to a tuple of strings."""

    if isinstance(value, (list, tuple)):
        return tuple(str(item) for item in value if item not in (None, ""))
    return (str(value),)
