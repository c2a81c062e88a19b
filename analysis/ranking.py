"""Top/bottom-N selection for bar charts."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from .dto import SortOrder
from .numbers import coerce_number_or_zero


def rank_rows(
    rows: Sequence[Mapping[str, Any]],
    sort_by: str,
    *,
    sort_order: SortOrder | str | None = None,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Sort bar rows by a value column and keep the top or bottom N.

    Rows are first sorted from largest to smallest (stable; unparseable values
    count as zero). With `limit`, descending order keeps the first N rows and
    ascending order keeps the last N. Ascending results are then reversed so
    they display smallest first.

    Args:
        rows: Input rows.
        sort_by: Column to rank on.
        sort_order: `asc` for bottom-N; anything else ranks descending.
        limit: Number of rows to keep; None or a non-positive value keeps all.

    Returns:
        New list of rows.

    Example:
        Values `A=50, B=30, C=90` with `limit=2` give `[C, A]` descending and
        `[B, A]` ascending.
    """

    ranked = sorted(
        (dict(row) for row in rows),
        key=lambda row: coerce_number_or_zero(row.get(sort_by)),
        reverse=True,
    )
    ascending = sort_order == "asc"
    if limit is not None and limit > 0:
        ranked = ranked[-limit:] if ascending else ranked[:limit]
    if ascending:
        ranked.reverse()
    return ranked
