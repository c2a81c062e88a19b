"""Best-effort numeric parsing for dashboard cell values.

Uploaded spreadsheets carry numbers as strings with currency symbols,
thousands separators, percent signs, and accounting-style negatives
(e.g. `$1,200`, `€ 45`, `12%`, `(300)`).

Two coercion policies coexist and are deliberately kept apart:

- `coerce_number_or_zero`: unparseable values count as `0`. Used for bar
  ranking, heatmap collapse totals and dual-axis scale checks.
- `parse_number_or_none`: unparseable values return None so callers can drop
  them from an aggregate. Used for heatmap cell values.

The divergence is preserved from the dashboard's historical behavior; see
DESIGN.md before unifying them.

This module never raises on unknown formats.
"""

from __future__ import annotations

import math
import re
from typing import Final

_STRIP_PATTERN: Final = re.compile(r"[€$£¥,\s%]")
_FLOAT_PREFIX: Final = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

MAX_SAFE_VALUE: Final[float] = 1e15


def strip_currency(text: str) -> str:
    """Remove currency symbols, thousands separators, whitespace and `%`."""

    return _STRIP_PATTERN.sub("", text)


def parse_float_prefix(text: str) -> float | None:
    """Parse the leading float of a string, ignoring trailing garbage.

    Args:
        text: Candidate numeric text (e.g. `12.5kg`).

    Returns:
        The parsed float, or None when the string does not start with a number.
    """

    match = _FLOAT_PREFIX.match(text)
    if match is None:
        return None
    return float(match.group(0))


def coerce_number_or_zero(value: object) -> float:
    """Coerce a cell value to float, treating unparseable values as zero.

    Args:
        value: Raw cell value.

    Returns:
        The numeric value, or `0.0` for None, booleans, and malformed strings.
    """

    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if not math.isnan(value) else 0.0
    if not isinstance(value, str):
        return 0.0
    parsed = parse_float_prefix(strip_currency(value))
    return parsed if parsed is not None else 0.0


def parse_number_or_none(value: object) -> float | None:
    """Parse a cell value to float, returning None when it is not numeric.

    Args:
        value: Raw cell value.

    Returns:
        The numeric value, or None for non-numeric input.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if math.isnan(value) else float(value)
    if not isinstance(value, str):
        return None
    return parse_float_prefix(strip_currency(value))


def parse_numeric_value(value: object) -> float | None:
    """Parse a value for grouped aggregation and formula evaluation.

    Accepts everything `parse_number_or_none` accepts, plus accounting-style
    negatives wrapped in parentheses. Non-finite values and magnitudes above
    `MAX_SAFE_VALUE` are rejected.

    Args:
        value: Raw cell value.

    Returns:
        The parsed float, or None when the value is missing or invalid.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    cleaned = value.strip()
    negative = cleaned.startswith("(") and cleaned.endswith(")")
    if negative:
        cleaned = cleaned[1:-1].strip()

    number = parse_float_prefix(strip_currency(cleaned))
    if number is None or not math.isfinite(number):
        return None
    if abs(number) > MAX_SAFE_VALUE:
        return None
    return -number if negative else number


def loose_number(value: object) -> float:
    """Convert a value the way a dashboard comparison operator does.

    Booleans map to 1/0, None and empty strings to 0, numeric strings to their
    value; anything else becomes NaN so every comparison against it fails.
    """

    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan
