"""Pytest fixtures shared across the chart dashboard tests."""

from __future__ import annotations

from collections.abc import Iterator, Sequence

import pytest

from core.services import reset_pass_cache


@pytest.fixture
def fresh_pass_cache() -> Iterator[None]:
    """Rebuild the process-wide chart pass cache around a test."""

    reset_pass_cache()
    yield
    reset_pass_cache()


@pytest.fixture
def sales_rows() -> list[dict[str, object]]:
    """Return a small dataset with a date column and two differently scaled metrics."""

    return [
        {"date": "2024-01-03", "region": "West", "visits": 120, "revenue": 4500},
        {"date": "2024-01-01", "region": "East", "visits": 80, "revenue": 2000},
        {"date": "2024-01-02", "region": "West", "visits": 95, "revenue": 3100},
        {"date": "2024-02-10", "region": "North", "visits": 60, "revenue": 1250},
    ]


def pytest_collection_modifyitems(items: Sequence[pytest.Item]) -> None:
    """Enforce that every test has exactly one speed marker.

    The suite is runnable by intent:
    - `unit`: pure, fast tests with no Django request cycle.
    - `integration`: tests touching Django views, settings, or the filesystem.

    Each test must have exactly one of these markers.
    """

    invalid: list[str] = []
    for item in items:
        has_unit = item.get_closest_marker("unit") is not None
        has_integration = item.get_closest_marker("integration") is not None
        if has_unit == has_integration:
            markers = []
            if has_unit:
                markers.append("unit")
            if has_integration:
                markers.append("integration")
            invalid.append(f"{item.nodeid} (markers={markers or 'none'})")

    if invalid:
        joined = "\n".join(f"- {nodeid}" for nodeid in invalid)
        raise pytest.UsageError(
            "Each test must have exactly one speed marker: `@pytest.mark.unit` or "
            "`@pytest.mark.integration`.\n"
            f"Offending tests:\n{joined}"
        )
