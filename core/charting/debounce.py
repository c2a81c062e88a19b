"""Resize debouncing for chart containers.

Dragging a window edge produces a burst of container sizes. Recomputing the
layout for every intermediate size is wasted work, so sizes are coalesced:
the last size pushed wins once no new size has arrived for `quiet_ms`.

The debouncer is driven by an injectable monotonic clock instead of timers or
threads, so callers poll it from their own loop and tests control time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Final

logger = logging.getLogger(__name__)

DEFAULT_QUIET_MS: Final[int] = 250

Size = tuple[float, float]


class ResizeDebouncer:
    """Coalesce container resize events, last event wins.

    Args:
        quiet_ms: Quiet period in milliseconds before a size settles.
        clock: Monotonic clock returning seconds; `time.monotonic` by default.
    """

    def __init__(self, quiet_ms: int = DEFAULT_QUIET_MS, clock: Callable[[], float] | None = None) -> None:
        if quiet_ms < 0:
            raise ValueError(f"quiet_ms must be >= 0, got {quiet_ms}")
        self.quiet_ms = quiet_ms
        self._clock = clock or time.monotonic
        self._pending: Size | None = None
        self._last_event_at: float | None = None
        self._settled: Size | None = None
        self.coalesced = 0

    @property
    def settled(self) -> Size | None:
        """Return the most recently settled size, if any."""

        return self._settled

    @property
    def has_pending(self) -> bool:
        """Return True while a burst is waiting for its quiet period."""

        return self._pending is not None

    def push(self, width: float, height: float) -> None:
        """Record a measured container size and restart the quiet period."""

        if self._pending is not None:
            self.coalesced += 1
        self._pending = (width, height)
        self._last_event_at = self._clock()

    def poll(self) -> Size | None:
        """Return the settled size once the quiet period has elapsed.

        Returns:
            The last pushed size exactly once per burst, or None while the
            burst is still active or nothing is pending.
        """

        if self._pending is None or self._last_event_at is None:
            return None
        elapsed_ms = (self._clock() - self._last_event_at) * 1000
        if elapsed_ms < self.quiet_ms:
            return None
        return self._commit()

    def flush(self) -> Size | None:
        """Settle the pending size immediately, ignoring the quiet period."""

        if self._pending is None:
            return None
        return self._commit()

    def _commit(self) -> Size:
        size = self._pending
        assert size is not None
        if self.coalesced:
            logger.debug("Coalesced %d resize events into %sx%s.", self.coalesced + 1, size[0], size[1])
        self._settled = size
        self._pending = None
        self._last_event_at = None
        self.coalesced = 0
        return size
