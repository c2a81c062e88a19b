"""Unit tests for the aggregation engine registry and per-type transforms."""

from __future__ import annotations

import logging
from typing import get_args

import pytest

from analysis.dto import ChartType
from analysis.engine import CHART_VARIANTS, MAX_RENDER_ROWS, aggregate, get_variant, sort_by_date
from analysis.mapping import FieldMapping

pytestmark = pytest.mark.unit


def test_every_chart_type_has_a_variant() -> None:
    """The registry covers exactly the declared chart types."""

    assert set(CHART_VARIANTS) == set(get_args(ChartType))


def test_unknown_chart_type_raises() -> None:
    """Unknown chart types are programming errors."""

    with pytest.raises(ValueError, match="Unsupported chart type"):
        get_variant("radar")
    with pytest.raises(ValueError):
        aggregate("radar", [{"a": 1}], FieldMapping())


def test_row_cap_applies_only_to_capped_types() -> None:
    """Line charts are capped; whole-dataset types are not."""

    rows = [{"i": i, "v": 1} for i in range(MAX_RENDER_ROWS + 500)]
    assert len(aggregate("line", rows, FieldMapping(x_axis="i", y_axis=("v",)))) == MAX_RENDER_ROWS
    assert len(aggregate("gauge", rows, FieldMapping(metric="v"))) == MAX_RENDER_ROWS + 500


def test_grouped_line_conserves_sum() -> None:
    """Summing by X keeps the grand total."""

    rows = [{"k": f"g{i % 4}", "v": i} for i in range(20)]
    result = aggregate("line", rows, FieldMapping(x_axis="k", y_axis=("v",), aggregation="sum"))
    assert len(result) == 4
    assert sum(row["v"] for row in result) == sum(range(20))


def test_bar_groups_then_ranks() -> None:
    """Bar charts aggregate before top-N selection."""

    rows = [
        {"region": "A", "sales": 20},
        {"region": "B", "sales": 30},
        {"region": "A", "sales": 30},
        {"region": "C", "sales": 90},
    ]
    mapping = FieldMapping(x_axis="region", y_axis=("sales",), aggregation="sum", sort_by="sales", limit=2)
    assert [(row["region"], row["sales"]) for row in aggregate("bar", rows, mapping)] == [("C", 90.0), ("A", 50.0)]

    ascending = FieldMapping(x_axis="region", y_axis=("sales",), aggregation="sum", sort_by="sales", sort_order="asc", limit=2)
    assert [row["region"] for row in aggregate("bar", rows, ascending)] == ["B", "A"]


def test_date_x_axis_is_sorted_chronologically() -> None:
    """Rows are sorted by a date X key before plotting."""

    rows = [{"d": "2024-03-01", "v": 3}, {"d": "2024-01-01", "v": 1}, {"d": "2024-02-01", "v": 2}]
    result = aggregate("line", rows, FieldMapping(x_axis="d", y_axis=("v",)))
    assert [row["v"] for row in result] == [1, 2, 3]


def test_sort_by_date_puts_unparseable_last() -> None:
    """Unparseable dates keep their relative order at the end."""

    rows = [{"d": "later"}, {"d": "2024-02-01"}, {"d": None}, {"d": "2024-01-01"}]
    assert [row["d"] for row in sort_by_date(rows, "d")] == ["2024-01-01", "2024-02-01", "later", None]


def test_formula_scorecard_replaces_rows_with_single_value() -> None:
    """Formula scorecards evaluate over the whole dataset by default."""

    rows = [{"a": 1, "b": 2}, {"a": 3, "b": 4}]
    mapping = FieldMapping(formula="SUM(a) / SUM(b)", formula_alias="ratio", formula_round=2)
    assert aggregate("scorecard", rows, mapping) == [{"ratio": 0.67, "_calculationType": "formula"}]


def test_failing_formula_keeps_source_rows(caplog: pytest.LogCaptureFixture) -> None:
    """A broken formula is logged and the scorecard falls back to its rows."""

    rows = [{"a": 1}]
    mapping = FieldMapping(formula="SUM(missing)", formula_alias="x")
    with caplog.at_level(logging.ERROR, logger="analysis.engine"):
        assert aggregate("scorecard", rows, mapping) == rows
    assert "SUM(missing)" in caplog.text


def test_combo_coerces_axis_groups_to_numbers() -> None:
    """Combo series values are coerced, garbage to zero."""

    rows = [{"m": "Jan", "visits": "1,200", "rate": "n/a", "note": "x"}]
    mapping = FieldMapping(x_axis="m", y_axis1=("visits",), y_axis2=("rate",))
    assert aggregate("combo", rows, mapping) == [{"m": "Jan", "visits": 1200.0, "rate": 0.0, "note": "x"}]


def test_scatter_coerces_axes_and_size() -> None:
    """Scatter X, Y and size columns become numbers."""

    rows = [{"x": "1", "y": "2.5", "size": "$3", "label": "p"}]
    mapping = FieldMapping(x_axis="x", y_axis=("y",), size="size")
    assert aggregate("scatter", rows, mapping) == [{"x": 1.0, "y": 2.5, "size": 3.0, "label": "p"}]


def test_treemap_groups_by_category() -> None:
    """Treemaps aggregate the value column per category."""

    rows = [{"c": "a", "v": 1}, {"c": "b", "v": 2}, {"c": "a", "v": 3}]
    mapping = FieldMapping(category="c", value="v", aggregation="max")
    assert aggregate("treemap", rows, mapping) == [{"c": "a", "v": 3.0}, {"c": "b", "v": 2.0}]


def test_heatmap_bins_cells() -> None:
    """Heatmaps bin by the X column and the first Y column."""

    rows = [{"d": "alpha", "h": 1, "n": 2}, {"d": "alpha", "h": 1, "n": 3}, {"d": "beta", "h": 2, "n": 1}]
    mapping = FieldMapping(x_axis="d", y_axis=("h",), value="n", aggregation="sum")
    assert aggregate("heatmap", rows, mapping) == [
        {"d": "alpha", "h": "1", "n": 5.0},
        {"d": "beta", "h": "2", "n": 1.0},
    ]


def test_aggregate_never_mutates_input() -> None:
    """Input rows are left untouched by every transform."""

    rows = [{"x": "1", "y": "2"}]
    aggregate("scatter", rows, FieldMapping(x_axis="x", y_axis=("y",)))
    assert rows == [{"x": "1", "y": "2"}]


def test_empty_rows_produce_empty_output() -> None:
    """Nothing in, nothing out."""

    assert aggregate("bar", [], FieldMapping(x_axis="a")) == []


def test_nan_percentile_from_json_does_not_break_aggregation() -> None:
    """A NaN percentile decoded from a request falls back to the median."""

    rows = [{"x": "a", "v": 1}, {"x": "a", "v": 3}, {"x": "a", "v": 5}]
    mapping = FieldMapping.from_dict({"xAxis": "x", "yAxis": "v", "aggregation": "percentile", "percentile": float("nan")})

    assert aggregate("line", rows, mapping) == [{"x": "a", "v": 3.0}]
