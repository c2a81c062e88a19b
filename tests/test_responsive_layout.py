"""Unit tests for responsive sizing, feature flags and axis layout."""

from __future__ import annotations

import pytest

from analysis.mapping import FieldMapping
from core.charting.dto import AxisLayout, Breakpoints, ChartMinimum, ChartProfiles, ContainerSizing
from core.charting.responsive import (
    compute_axis_labels,
    compute_axis_layout,
    compute_chart_layout,
    compute_container_sizing,
    compute_responsive_features,
    format_axis_value,
)
from core.charting.text_metrics import FixedWidthMeasurer

pytestmark = pytest.mark.unit

MEASURER = FixedWidthMeasurer(char_width=6)
PROFILES = ChartProfiles(
    minimums={
        "bar": ChartMinimum(width=300, height=250),
        "pie": ChartMinimum(width=280, height=280),
        "scorecard": ChartMinimum(width=200, height=120),
    },
    breakpoints=Breakpoints(),
)


def _features(width: float, height: float = 400):
    sizing = ContainerSizing(width=width, height=height, meets_minimums=True, is_constrained=False)
    return sizing, compute_responsive_features(sizing, PROFILES.breakpoints)


def test_small_container_is_raised_to_minimum() -> None:
    """Effective size never drops below the chart minimum."""

    sizing = compute_container_sizing("bar", 200, 100, PROFILES)
    assert sizing == ContainerSizing(width=300, height=250, meets_minimums=False, is_constrained=True)


def test_unlisted_type_uses_fallback_minimum() -> None:
    """Chart types without a profile reuse the fallback minimum."""

    assert compute_container_sizing("gauge", 100, 100, PROFILES).width == 300


def test_pie_is_squared_when_minimums_are_met() -> None:
    """Pie charts take the smaller side when the container is big enough."""

    assert compute_container_sizing("pie", 600, 400, PROFILES).width == 400
    narrow = compute_container_sizing("pie", 200, 400, PROFILES)
    assert (narrow.width, narrow.height) == (280, 400)


def test_feature_flags_follow_breakpoints() -> None:
    """Legend/grid need medium, secondary labels large, primary labels small."""

    _sizing, mid = _features(400)
    assert (mid.show_legend, mid.show_grid, mid.show_secondary_labels, mid.show_primary_labels) == (True, True, False, True)
    _sizing, tiny = _features(200)
    assert tiny.use_fallback_view is True
    assert tiny.show_primary_labels is False
    _sizing, wide = _features(800)
    assert wide.show_secondary_labels is True


def test_short_labels_stay_horizontal() -> None:
    """A handful of short labels need no rotation or tick skipping."""

    rows = [{"x": label, "v": value} for label, value in zip("ABCDE", (10, 20000, 300, 4, 5))]
    sizing, features = _features(600)

    layout = compute_axis_layout(rows, ("x", "v"), sizing, features, MEASURER)

    assert layout == AxisLayout(
        rotation=0,
        bottom_margin=50,
        left_margin=51,
        right_margin=20,
        top_margin=40,
        x_axis_interval=0,
    )


def test_crowded_labels_rotate_and_skip_ticks() -> None:
    """Many medium labels rotate 30 degrees and thin out the ticks."""

    rows = [{"x": f"Category {i:02d}"} for i in range(40)]
    sizing, features = _features(400, 300)

    layout = compute_axis_layout(rows, ("x",), sizing, features, MEASURER)

    assert layout.rotation == -30
    assert layout.bottom_margin == 60
    assert layout.x_axis_interval == 5


def test_long_labels_rotate_45_and_cap_bottom_margin() -> None:
    """Labels longer than twelve characters rotate 45 degrees."""

    rows = [{"x": f"Department Number {i:02d}"} for i in range(40)]
    sizing, features = _features(400, 300)

    layout = compute_axis_layout(rows, ("x",), sizing, features, MEASURER)

    assert layout.rotation == -45
    assert layout.bottom_margin == 80


def test_explicit_rotation_overrides_auto() -> None:
    """A user rotation choice wins over the automatic rule."""

    rows = [{"x": f"Category {i:02d}"} for i in range(40)]
    sizing, features = _features(400, 300)

    vertical = compute_axis_layout(rows, ("x",), sizing, features, MEASURER, label_rotation="vertical")
    horizontal = compute_axis_layout(rows, ("x",), sizing, features, MEASURER, label_rotation="horizontal")

    assert (vertical.rotation, vertical.bottom_margin) == (-90, 76)
    assert horizontal.rotation == 0


def test_hidden_primary_labels_use_default_layout() -> None:
    """Below the small breakpoint the default layout is returned."""

    sizing, features = _features(200)
    assert compute_axis_layout([{"x": "a"}], ("x",), sizing, features, MEASURER) == AxisLayout()


def test_axis_titles_come_from_mapping_and_truncate() -> None:
    """Titles resolve from the mapping and are cut to 30% of the width (min 100px)."""

    sizing, features = _features(300)
    title = "Monthly recurring revenue by region"
    labels = compute_axis_labels(
        ("month", "a", "b"),
        sizing,
        features,
        MEASURER,
        mapping=FieldMapping(x_axis=title, y_axis=("a", "b")),
    )

    assert labels.x == title[:13] + "..."
    assert labels.x_truncated is True
    assert labels.x_original == title
    assert (labels.y, labels.y_truncated) == ("a, b", False)


def test_axis_titles_fall_back_to_keys() -> None:
    """Without a mapping the keys name the axes, `Value` when Y is absent."""

    sizing, features = _features(600)
    assert compute_axis_labels(("day",), sizing, features, MEASURER).y == "Value"
    explicit = compute_axis_labels(("day", "v"), sizing, features, MEASURER, axis_titles={"y": "Visits"})
    assert (explicit.x, explicit.y) == ("day", "Visits")


@pytest.mark.parametrize(
    ("value", "expected"),
    [(1234567, "1,234,567"), (1.5, "1.5"), (0.12345, "0.123"), (-2.0, "-2")],
)
def test_format_axis_value(value: float, expected: str) -> None:
    """Ticks use thousands separators and at most three decimals."""

    assert format_axis_value(value) == expected


def test_compute_chart_layout_combines_every_step() -> None:
    """One call sizes the container, picks features and lays out both axes."""

    rows = [{"x": "A", "v": 1}]
    layout = compute_chart_layout("bar", rows, ("x", "v"), 200, 100, profiles=PROFILES, measurer=MEASURER)

    assert layout.sizing.width == 300
    assert layout.features.show_legend is False
    assert layout.axis.top_margin == 20
    assert (layout.labels.x, layout.labels.y) == ("x", "v")
