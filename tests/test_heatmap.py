"""Unit tests for heatmap binning and auto-collapse."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from analysis.heatmap import (
    MAX_X_CATEGORIES,
    MAX_Y_CATEGORIES,
    aggregate_heatmap,
    collapse_heatmap,
    composite_key,
    rebucket_weekly,
)

pytestmark = pytest.mark.unit


def test_aggregate_heatmap_bins_cells_and_skips_missing() -> None:
    """Cells reduce their values; null axes and all-non-numeric cells are dropped."""

    rows = [
        {"day": "Mon", "hour": 9, "visits": "10"},
        {"day": "Mon", "hour": 9, "visits": 5},
        {"day": "Tue", "hour": 9, "visits": "n/a"},
        {"day": None, "hour": 9, "visits": 100},
        {"day": "Wed", "hour": 10, "visits": 2},
    ]

    assert aggregate_heatmap(rows, "day", "hour", "visits") == [
        {"day": "Mon", "hour": "9", "visits": 15.0},
        {"day": "Wed", "hour": "10", "visits": 2.0},
    ]


def test_aggregate_heatmap_keeps_pipes_inside_categories() -> None:
    """Categories containing the display separator stay intact."""

    rows = [{"x": "a|b", "y": "c", "v": 1}, {"x": "a", "y": "b|c", "v": 2}]
    cells = aggregate_heatmap(rows, "x", "y", "v")
    assert [(cell["x"], cell["y"]) for cell in cells] == [("a|b", "c"), ("a", "b|c")]
    assert composite_key("a|b", "c") == composite_key("a", "b|c")


def test_aggregate_heatmap_supports_other_methods() -> None:
    """The cell reducer follows the mapping's aggregation method."""

    rows = [{"x": "a", "y": "b", "v": 1}, {"x": "a", "y": "b", "v": 3}]
    assert aggregate_heatmap(rows, "x", "y", "v", "avg") == [{"x": "a", "y": "b", "v": 2.0}]


def test_collapse_keeps_top_y_categories_by_total() -> None:
    """More than the Y cap keeps only the largest categories."""

    cells = [{"x": "a", "y": f"cat{i}", "v": float(i)} for i in range(MAX_Y_CATEGORIES + 5)]
    collapsed = collapse_heatmap(cells, "x", "y", "v")
    assert len(collapsed) == MAX_Y_CATEGORIES
    assert {cell["y"] for cell in collapsed} == {f"cat{i}" for i in range(5, MAX_Y_CATEGORIES + 5)}


def test_collapse_keeps_top_x_categories_for_non_dates() -> None:
    """Non-date X columns above the cap keep the largest columns."""

    cells = [{"x": f"col{i}", "y": "r", "v": float(i)} for i in range(MAX_X_CATEGORIES + 10)]
    collapsed = collapse_heatmap(cells, "x", "y", "v")
    assert len(collapsed) == MAX_X_CATEGORIES
    assert "col0" not in {cell["x"] for cell in collapsed}


def test_collapse_rebuckets_dates_into_sunday_weeks() -> None:
    """Date X columns above the cap are summed per Sunday-start week."""

    start = date(2024, 1, 7)  # a Sunday
    cells = [
        {"x": (start + timedelta(days=offset)).isoformat(), "y": "r", "v": 1.0}
        for offset in range(MAX_X_CATEGORIES + 5)
    ]

    collapsed = collapse_heatmap(cells, "x", "y", "v")

    assert collapsed[0] == {"x": "2024-01-07", "y": "r", "v": 7.0}
    assert sum(cell["v"] for cell in collapsed) == MAX_X_CATEGORIES + 5
    assert collapse_heatmap(collapsed, "x", "y", "v") == collapsed


def test_collapse_is_idempotent_for_small_grids() -> None:
    """A grid within both caps is returned unchanged."""

    cells = [{"x": "a", "y": "b", "v": 1.0}]
    assert collapse_heatmap(cells, "x", "y", "v") == cells


def test_rebucket_weekly_drops_unparseable_dates() -> None:
    """Cells whose X is not a date are dropped."""

    cells = [{"x": "2024-01-10", "y": "r", "v": 2}, {"x": "someday", "y": "r", "v": 5}]
    assert rebucket_weekly(cells, "x", "y", "v") == [{"x": "2024-01-07", "y": "r", "v": 2.0}]


def test_aggregate_heatmap_merges_integral_float_categories() -> None:
    """Cells keyed by 9 and 9.0 are the same cell."""

    rows = [
        {"day": "alpha", "hour": 9, "visits": 1},
        {"day": "alpha", "hour": 9.0, "visits": 2},
    ]

    assert aggregate_heatmap(rows, "day", "hour", "visits") == [{"day": "alpha", "hour": "9", "visits": 3.0}]
