"""Unit tests for time bucketing."""

from __future__ import annotations

import logging
from datetime import date, datetime

import pytest

from analysis.granularity import (
    MONDAY,
    aggregate_by_granularity,
    aggregate_date_buckets,
    bucket_key,
    bucket_label,
    bucket_start,
    start_of_week,
)

pytestmark = pytest.mark.unit


def test_weeks_start_on_sunday_by_default_and_monday_on_request() -> None:
    """Dashboard weeks start Sunday; chart filter weeks start Monday."""

    wednesday = date(2024, 1, 3)
    assert start_of_week(wednesday) == date(2023, 12, 31)
    assert start_of_week(wednesday, week_starts_on=MONDAY) == date(2024, 1, 1)


def test_bucket_start_per_granularity() -> None:
    """Each granularity maps a day to the first day of its bucket."""

    day = date(2024, 5, 10)
    assert bucket_start(day, "day") == day
    assert bucket_start(day, "month") == date(2024, 5, 1)
    assert bucket_start(day, "quarter") == date(2024, 4, 1)
    assert bucket_start(day, "year") == date(2024, 1, 1)


def test_bucket_labels_are_human_readable() -> None:
    """Dashboard labels read like `Jan 5, 2024` and `Q2 2024`."""

    moment = datetime(2024, 5, 10, 13, 0)
    assert bucket_label(moment, "day") == "May 10, 2024"
    assert bucket_label(moment, "week") == "May 5, 2024"
    assert bucket_label(moment, "month") == "May 2024"
    assert bucket_label(moment, "quarter") == "Q2 2024"
    assert bucket_label(moment, "year") == "2024"


def test_bucket_keys_are_sortable() -> None:
    """Chart filter keys sort lexically in chronological order."""

    day = date(2024, 5, 10)
    assert bucket_key(day, "day") == "2024-05-10"
    assert bucket_key(day, "week") == "2024-05-06"
    assert bucket_key(day, "month") == "2024-05"
    assert bucket_key(day, "quarter") == "2024-Q2"
    assert bucket_key(day, "year") == "2024"


def test_aggregate_by_granularity_sums_numbers_and_orders_buckets() -> None:
    """Numeric columns are summed per bucket; text keeps the first value."""

    rows = [
        {"date": "2024-01-05", "sales": 10, "region": "West"},
        {"date": "2024-01-20", "sales": "5", "region": "East"},
        {"date": "2023-12-31", "sales": 1, "region": "West"},
        {"date": "", "sales": 100, "region": "North"},
    ]

    result = aggregate_by_granularity(rows, "month", "date")

    assert result == [
        {"date": "Dec 2023", "sales": 1.0, "region": "West"},
        {"date": "Jan 2024", "sales": 15.0, "region": "West"},
    ]


def test_aggregate_by_granularity_without_date_column_is_passthrough() -> None:
    """Rows with no detectable date column are returned unchanged."""

    rows = [{"name": "a", "value": 1}]
    assert aggregate_by_granularity(rows, "month") == rows


def test_aggregate_by_granularity_detects_date_column() -> None:
    """The first strict date column is used when none is given."""

    rows = [{"when": "2024-01-01", "n": 1}, {"when": "2024-01-02", "n": 2}]
    assert aggregate_by_granularity(rows, "year") == [{"when": "2024", "n": 3.0}]


def test_aggregate_date_buckets_adds_metadata(caplog: pytest.LogCaptureFixture) -> None:
    """Chart-level buckets sum schema numerics and count rows; bad dates are skipped."""

    rows = [
        {"d": "2024-01-02", "amt": "10", "cat": "a"},
        {"d": "2024-01-08", "amt": "5", "cat": "b"},
        {"d": "2024-01-03", "amt": "x", "cat": "a"},
        {"d": "garbage", "amt": 1, "cat": "z"},
    ]

    with caplog.at_level(logging.WARNING, logger="analysis.granularity"):
        result = aggregate_date_buckets(rows, "d", "week", numeric_columns=["amt"])

    assert result == [
        {"d": "2024-01-01", "_aggregatedDate": "2024-01-01", "_granularity": "week", "_rowCount": 2, "amt": 10.0, "cat": "a"},
        {"d": "2024-01-08", "_aggregatedDate": "2024-01-08", "_granularity": "week", "_rowCount": 1, "amt": 5.0, "cat": "b"},
    ]
    assert "garbage" in caplog.text
