"""Forms validating chart endpoint payloads.

Payloads arrive as JSON bodies using the dashboard's camelCase keys. The view
decodes the body and binds the resulting dict; each `clean_*` method turns raw
JSON into the analysis DTOs.
"""

from __future__ import annotations

from typing import Any, get_args

from django import forms

from analysis.dates import parse_day
from analysis.dto import ChartFilter, ChartType, DashboardFilter, DateWindow, FilterOperator, Granularity
from analysis.mapping import FieldMapping
from core.charting.dto import LabelRotation

CHART_TYPE_CHOICES = [(name, name) for name in get_args(ChartType)]
GRANULARITY_CHOICES = [(name, name) for name in get_args(Granularity)]
LABEL_ROTATION_CHOICES = [(name, name) for name in get_args(LabelRotation)]
_CHART_FILTER_TYPES = ("date_aggregation", "categorical", "numeric_range")


class ChartRenderForm(forms.Form):
    """Validate a single chart render request."""

    chartType = forms.ChoiceField(choices=CHART_TYPE_CHOICES)
    rows = forms.JSONField(required=False)
    schema = forms.JSONField(required=False)
    suggestedMapping = forms.JSONField(required=False)
    mapping = forms.JSONField(required=False)
    chartFilters = forms.JSONField(required=False)
    dashboardFilters = forms.JSONField(required=False)
    dateWindow = forms.JSONField(required=False)
    dateColumn = forms.CharField(required=False)
    granularity = forms.ChoiceField(choices=GRANULARITY_CHOICES, required=False)
    width = forms.FloatField(min_value=0)
    height = forms.FloatField(min_value=0)
    labelRotation = forms.ChoiceField(choices=LABEL_ROTATION_CHOICES, required=False)
    axisLabels = forms.JSONField(required=False)
    title = forms.CharField(required=False)

    def clean_rows(self) -> list[dict[str, Any]]:
        """Require a list of JSON objects."""

        rows = self.cleaned_data.get("rows") or []
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise forms.ValidationError("rows must be a list of objects.")
        return rows

    def clean_schema(self) -> list[dict[str, Any]] | dict[str, str] | None:
        """Accept a `{column: type}` object or a list of `{name, type}` objects."""

        schema = self.cleaned_data.get("schema")
        if schema in (None, "", [], {}):
            return None
        if isinstance(schema, dict):
            return {str(name): str(kind) for name, kind in schema.items()}
        if isinstance(schema, list) and all(isinstance(column, dict) for column in schema):
            return schema
        raise forms.ValidationError("schema must be an object or a list of column objects.")

    def clean_suggestedMapping(self) -> FieldMapping | None:
        return _mapping_from_json(self.cleaned_data.get("suggestedMapping"))

    def clean_mapping(self) -> FieldMapping | None:
        return _mapping_from_json(self.cleaned_data.get("mapping"))

    def clean_chartFilters(self) -> tuple[ChartFilter, ...]:
        """Parse chart filters; unknown filter types are rejected."""

        raw = self.cleaned_data.get("chartFilters") or []
        if not isinstance(raw, list):
            raise forms.ValidationError("chartFilters must be a list.")
        parsed: list[ChartFilter] = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict) or not item.get("column"):
                raise forms.ValidationError(f"chartFilters[{index}] must be an object with a column.")
            filter_type = item.get("type")
            if filter_type not in _CHART_FILTER_TYPES:
                raise forms.ValidationError(f"chartFilters[{index}] has unknown type {filter_type!r}.")
            granularity = item.get("dateGranularity")
            if granularity is not None and granularity not in get_args(Granularity):
                raise forms.ValidationError(f"chartFilters[{index}] has unknown granularity {granularity!r}.")
            parsed.append(
                ChartFilter(
                    id=str(item.get("id") or f"filter-{index}"),
                    type=filter_type,
                    column=str(item["column"]),
                    is_active=bool(item.get("isActive", True)),
                    date_granularity=granularity,
                    selected_values=tuple(str(value) for value in item.get("selectedValues") or ()),
                    min=_optional_float(item.get("min"), f"chartFilters[{index}].min"),
                    max=_optional_float(item.get("max"), f"chartFilters[{index}].max"),
                )
            )
        return tuple(parsed)

    def clean_dashboardFilters(self) -> tuple[DashboardFilter, ...]:
        """Parse dashboard filters; unknown operators are rejected."""

        raw = self.cleaned_data.get("dashboardFilters") or []
        if not isinstance(raw, list):
            raise forms.ValidationError("dashboardFilters must be a list.")
        operators = get_args(FilterOperator)
        parsed: list[DashboardFilter] = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict) or not item.get("column"):
                raise forms.ValidationError(f"dashboardFilters[{index}] must be an object with a column.")
            operator = item.get("operator")
            if operator not in operators:
                raise forms.ValidationError(f"dashboardFilters[{index}] has unknown operator {operator!r}.")
            parsed.append(
                DashboardFilter(
                    id=str(item.get("id") or f"dashboard-filter-{index}"),
                    column=str(item["column"]),
                    operator=operator,
                    value=item.get("value"),
                    type=str(item.get("type") or "value"),
                    is_active=bool(item.get("isActive", True)),
                )
            )
        return tuple(parsed)

    def clean_dateWindow(self) -> DateWindow | None:
        """Parse `{from, to}` date bounds."""

        raw = self.cleaned_data.get("dateWindow")
        if raw in (None, "", {}):
            return None
        if not isinstance(raw, dict):
            raise forms.ValidationError("dateWindow must be an object with from/to dates.")
        bounds = {}
        for key in ("from", "to"):
            value = raw.get(key)
            if value in (None, ""):
                bounds[key] = None
                continue
            day = parse_day(value) if isinstance(value, str) else None
            if day is None:
                raise forms.ValidationError(f"dateWindow.{key} is not a valid date.")
            bounds[key] = day
        if bounds["from"] and bounds["to"] and bounds["from"] > bounds["to"]:
            raise forms.ValidationError("dateWindow.from must not be after dateWindow.to.")
        return DateWindow(from_date=bounds["from"], to_date=bounds["to"])

    def clean_dateColumn(self) -> str | None:
        return self.cleaned_data.get("dateColumn") or None

    def clean_granularity(self) -> str | None:
        return self.cleaned_data.get("granularity") or None

    def clean_labelRotation(self) -> str | None:
        return self.cleaned_data.get("labelRotation") or None

    def clean_axisLabels(self) -> dict[str, str]:
        raw = self.cleaned_data.get("axisLabels") or {}
        if not isinstance(raw, dict):
            raise forms.ValidationError("axisLabels must be an object.")
        return {key: str(raw[key]) for key in ("x", "y") if raw.get(key)}


class TruncateLabelForm(forms.Form):
    """Validate a label truncation request."""

    text = forms.CharField(strip=False, required=False)
    maxWidth = forms.FloatField(min_value=0)


def _mapping_from_json(raw: object) -> FieldMapping | None:
    if raw in (None, "", {}):
        return None
    if not isinstance(raw, dict):
        raise forms.ValidationError("Mappings must be objects.")
    try:
        return FieldMapping.from_dict(raw)
    except (TypeError, ValueError) as exc:
        raise forms.ValidationError(f"Invalid mapping: {exc}") from exc


def _optional_float(value: object, label: str) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise forms.ValidationError(f"{label} must be a number.")
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        raise forms.ValidationError(f"{label} must be a number.") from None
