"""Text width measurement and label truncation for chart axes.

Renderers draw labels at `LABEL_FONT_SIZE`. Widths are measured with a Pillow
font so truncation decisions match proportional glyph widths; the fixed-width
estimator is used where deterministic widths matter (tests, fallback config).
"""

from __future__ import annotations

from typing import Final, Protocol

from PIL import ImageFont

from .dto import TruncatedLabel

LABEL_FONT_SIZE: Final[int] = 11
ELLIPSIS: Final[str] = "..."
FALLBACK_CHAR_WIDTH: Final[float] = 6.0


class TextMeasurer(Protocol):
    """Measure the rendered width of a string in pixels."""

    def measure(self, text: str, font_size: int = LABEL_FONT_SIZE) -> float:
        """Return the width of `text` at `font_size`."""


class FixedWidthMeasurer:
    """Estimate widths as a constant number of pixels per character."""

    def __init__(self, char_width: float = FALLBACK_CHAR_WIDTH) -> None:
        self.char_width = char_width

    def measure(self, text: str, font_size: int = LABEL_FONT_SIZE) -> float:
        return len(text) * self.char_width


class PillowTextMeasurer:
    """Measure widths with a Pillow font.

    Args:
        font_path: Optional TrueType/OpenType file. When omitted, Pillow's
            bundled default font is loaded at each requested size.
    """

    def __init__(self, font_path: str | None = None) -> None:
        self.font_path = font_path
        self._fonts: dict[int, ImageFont.FreeTypeFont | ImageFont.ImageFont] = {}

    def measure(self, text: str, font_size: int = LABEL_FONT_SIZE) -> float:
        if not text:
            return 0.0
        return float(self._font(font_size).getlength(text))

    def _font(self, font_size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
        font = self._fonts.get(font_size)
        if font is None:
            if self.font_path:
                font = ImageFont.truetype(self.font_path, size=font_size)
            else:
                font = ImageFont.load_default(size=font_size)
            self._fonts[font_size] = font
        return font


def truncate_label(
    text: str,
    max_width: float,
    measurer: TextMeasurer,
    *,
    font_size: int = LABEL_FONT_SIZE,
) -> TruncatedLabel:
    """Fit a label into `max_width` pixels, appending an ellipsis when cut.

    The longest prefix whose `prefix + "..."` fits is found by binary search.
    When even an empty prefix does not fit, the result is the ellipsis alone.

    Args:
        text: Label to fit.
        max_width: Available width in pixels.
        measurer: Text measurer.
        font_size: Font size used for measurement.

    Returns:
        TruncatedLabel; unchanged (`is_truncated=False`) when the label fits.
    """

    if measurer.measure(text, font_size) <= max_width:
        return TruncatedLabel(text=text, is_truncated=False)

    low, high = 0, len(text)
    best = 0
    while low <= high:
        middle = (low + high) // 2
        if measurer.measure(text[:middle] + ELLIPSIS, font_size) <= max_width:
            best = middle
            low = middle + 1
        else:
            high = middle - 1

    truncated = text[:best] + ELLIPSIS if best > 0 else ELLIPSIS
    return TruncatedLabel(text=truncated, is_truncated=True)
