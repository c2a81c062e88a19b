"""Unit tests for bar chart top/bottom-N selection."""

from __future__ import annotations

import pytest

from analysis.ranking import rank_rows

pytestmark = pytest.mark.unit

ROWS = [{"name": "A", "v": 50}, {"name": "B", "v": 30}, {"name": "C", "v": 90}]


def test_descending_limit_keeps_largest() -> None:
    """Descending order keeps the top N, largest first."""

    assert [row["name"] for row in rank_rows(ROWS, "v", limit=2)] == ["C", "A"]


def test_ascending_limit_keeps_smallest_first() -> None:
    """Ascending order keeps the bottom N, smallest first."""

    assert [row["name"] for row in rank_rows(ROWS, "v", sort_order="asc", limit=2)] == ["B", "A"]


def test_non_positive_limit_keeps_everything() -> None:
    """A zero or negative limit is ignored."""

    assert len(rank_rows(ROWS, "v", limit=0)) == 3
    assert len(rank_rows(ROWS, "v", limit=-1)) == 3


def test_unparseable_values_rank_as_zero_and_ties_stay_stable() -> None:
    """Garbage counts as zero and equal values keep input order."""

    rows = [{"name": "x", "v": "n/a"}, {"name": "y", "v": 0}, {"name": "z", "v": "$5"}]
    assert [row["name"] for row in rank_rows(rows, "v")] == ["z", "x", "y"]


def test_rank_rows_does_not_mutate_input() -> None:
    """Ranking works on copies."""

    result = rank_rows(ROWS, "v")
    assert ROWS[0]["name"] == "A"
    assert result[0] is not ROWS[2]
