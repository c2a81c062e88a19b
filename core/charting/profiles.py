"""Load chart minimum sizes and responsive breakpoints from YAML."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from .dto import Breakpoints, ChartMinimum, ChartProfiles

DEFAULT_PROFILES_PATH = Path(__file__).with_name("chart_profiles.yaml")


@lru_cache(maxsize=8)
def load_chart_profiles(path: str | None = None) -> ChartProfiles:
    """Load chart profiles from a YAML file.

    Args:
        path: YAML file path; the bundled `chart_profiles.yaml` when omitted.

    Returns:
        ChartProfiles, cached per path.

    Raises:
        ValueError: If the file does not describe valid profiles.
    """

    source = Path(path) if path else DEFAULT_PROFILES_PATH
    payload = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    return parse_chart_profiles(payload, source=str(source))


def parse_chart_profiles(payload: dict[str, Any], *, source: str = "<memory>") -> ChartProfiles:
    """Build ChartProfiles from a decoded YAML payload.

    Raises:
        ValueError: If minimums are missing, non-numeric or non-positive, or
            the fallback type has no minimum.
    """

    raw_minimums = payload.get("minimums")
    if not isinstance(raw_minimums, dict) or not raw_minimums:
        raise ValueError(f"{source}: 'minimums' must be a non-empty mapping.")

    minimums: dict[str, ChartMinimum] = {}
    for chart_type, size in raw_minimums.items():
        if not isinstance(size, dict):
            raise ValueError(f"{source}: minimum for {chart_type!r} must be a mapping.")
        width = _positive(size.get("width"), f"{source}: {chart_type}.width")
        height = _positive(size.get("height"), f"{source}: {chart_type}.height")
        minimums[str(chart_type)] = ChartMinimum(width=width, height=height)

    fallback_type = str(payload.get("fallback_type") or "bar")
    if fallback_type not in minimums:
        raise ValueError(f"{source}: fallback type {fallback_type!r} has no minimum.")

    raw_breakpoints = payload.get("breakpoints") or {}
    defaults = Breakpoints()
    breakpoints = Breakpoints(
        small=_positive(raw_breakpoints.get("small", defaults.small), f"{source}: breakpoints.small"),
        medium=_positive(raw_breakpoints.get("medium", defaults.medium), f"{source}: breakpoints.medium"),
        large=_positive(raw_breakpoints.get("large", defaults.large), f"{source}: breakpoints.large"),
    )
    if not breakpoints.small <= breakpoints.medium <= breakpoints.large:
        raise ValueError(f"{source}: breakpoints must satisfy small <= medium <= large.")

    return ChartProfiles(minimums=minimums, breakpoints=breakpoints, fallback_type=fallback_type)


def _positive(value: object, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{label} must be a positive number, got {value!r}.")
    return float(value)
