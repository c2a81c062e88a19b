"""Tests for chart profile loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from core.charting.dto import Breakpoints, ChartMinimum
from core.charting.profiles import load_chart_profiles, parse_chart_profiles


@pytest.mark.unit
def test_bundled_profiles_define_minimums_and_breakpoints() -> None:
    """The bundled YAML ships minimums for the common chart types."""

    profiles = load_chart_profiles()
    assert profiles.minimum_for("bar") == ChartMinimum(width=300, height=250)
    assert profiles.minimum_for("pie") == ChartMinimum(width=280, height=280)
    assert profiles.breakpoints == Breakpoints(small=250, medium=350, large=500)


@pytest.mark.unit
def test_unlisted_chart_types_use_fallback_minimum() -> None:
    """Types without an entry reuse the fallback type's minimum."""

    profiles = load_chart_profiles()
    assert profiles.minimum_for("gauge") == profiles.minimum_for("bar")


@pytest.mark.unit
def test_missing_breakpoints_use_defaults() -> None:
    """Breakpoints are optional in the YAML."""

    profiles = parse_chart_profiles({"minimums": {"bar": {"width": 10, "height": 10}}})
    assert profiles.breakpoints == Breakpoints()


@pytest.mark.unit
@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"minimums": {"bar": {"width": 0, "height": 10}}},
        {"minimums": {"bar": {"width": "wide", "height": 10}}},
        {"minimums": {"bar": [300, 250]}},
        {"minimums": {"line": {"width": 10, "height": 10}}},
        {"minimums": {"bar": {"width": 10, "height": 10}}, "breakpoints": {"small": 600}},
    ],
)
def test_invalid_profiles_are_rejected(payload: dict[str, object]) -> None:
    """Malformed configuration fails loudly at load time."""

    with pytest.raises(ValueError):
        parse_chart_profiles(payload)


@pytest.mark.integration
def test_profiles_load_from_custom_file(tmp_path: Path) -> None:
    """A deployment can point at its own YAML file."""

    path = tmp_path / "profiles.yaml"
    path.write_text(
        "fallback_type: line\n"
        "minimums:\n"
        "  line: {width: 320, height: 200}\n"
        "breakpoints: {small: 200, medium: 300, large: 400}\n",
        encoding="utf-8",
    )

    profiles = load_chart_profiles(str(path))

    assert profiles.fallback_type == "line"
    assert profiles.minimum_for("bar") == ChartMinimum(width=320, height=200)
    assert profiles.breakpoints.large == 400
