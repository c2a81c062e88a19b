"""Tests for chart request form parsing."""

from __future__ import annotations

from datetime import date

import pytest

from analysis.dto import ChartFilter, DashboardFilter, DateWindow
from analysis.mapping import FieldMapping
from core.forms import ChartRenderForm

pytestmark = pytest.mark.integration


def test_form_converts_payload_into_analysis_types() -> None:
    """camelCase JSON becomes mappings, filters and windows."""

    form = ChartRenderForm(
        data={
            "chartType": "bar",
            "rows": [{"a": 1}],
            "mapping": {"xAxis": "a", "sortBy": "b", "limit": 3},
            "chartFilters": [{"id": "f", "type": "numeric_range", "column": "b", "min": "2", "isActive": False}],
            "dashboardFilters": [{"column": "a", "operator": "in", "value": [1, 2]}],
            "dateWindow": {"from": "2024-01-01", "to": ""},
            "schema": {"b": "number"},
            "granularity": "week",
            "width": 500,
            "height": 300,
        }
    )

    assert form.is_valid(), form.errors
    cleaned = form.cleaned_data
    assert cleaned["mapping"] == FieldMapping(x_axis="a", sort_by="b", limit=3)
    assert cleaned["chartFilters"] == (
        ChartFilter(id="f", type="numeric_range", column="b", is_active=False, min=2.0),
    )
    assert cleaned["dashboardFilters"] == (
        DashboardFilter(id="dashboard-filter-0", column="a", operator="in", value=[1, 2]),
    )
    assert cleaned["dateWindow"] == DateWindow(from_date=date(2024, 1, 1))
    assert cleaned["schema"] == {"b": "number"}
    assert cleaned["granularity"] == "week"
    assert cleaned["suggestedMapping"] is None
    assert cleaned["labelRotation"] is None


def test_form_rejects_non_numeric_filter_bounds() -> None:
    """Numeric range bounds must be numbers."""

    form = ChartRenderForm(
        data={
            "chartType": "bar",
            "width": 500,
            "height": 300,
            "chartFilters": [{"type": "numeric_range", "column": "b", "max": "lots"}],
        }
    )
    assert not form.is_valid()
    assert "chartFilters" in form.errors
