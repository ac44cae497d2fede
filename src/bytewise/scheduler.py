"""Cooperative repeating timers driving challenge countdowns.

Nothing here runs on its own thread. A tick source only fires callbacks when it
is advanced (tests) or pumped (the interactive shell, before each input line),
so timer callbacks and input handling are serialized on the caller's thread.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class TickHandle:
    """Cancellable registration of one repeating callback."""

    def __init__(self, interval: float, callback: Callable[[], None], start: float) -> None:
        self.interval = interval
        self.callback = callback
        self.next_due = start + interval
        self.cancelled = False

    def cancel(self) -> None:
        """Stop future callbacks; safe to call more than once."""
        self.cancelled = True


class TickSource(Protocol):
    """Anything that can schedule repeating callbacks."""

    def every(self, interval: float, callback: Callable[[], None]) -> TickHandle: ...

    def pump(self) -> int: ...


class _BaseTickSource:
    def __init__(self) -> None:
        self._handles: list[TickHandle] = []

    def _now(self) -> float:
        raise NotImplementedError

    def every(self, interval: float, callback: Callable[[], None]) -> TickHandle:
        """Register `callback` to run every `interval` seconds from now."""
        if interval <= 0:
            raise ValueError("Tick interval must be positive.")
        handle = TickHandle(interval, callback, self._now())
        self._handles.append(handle)
        logger.debug("Scheduled repeating callback every %.2fs", interval)
        return handle

    @property
    def active_count(self) -> int:
        """Return the number of live (not cancelled) registrations."""
        return len([handle for handle in self._handles if not handle.cancelled])

    def _fire_until(self, now: float) -> int:
        """Fire every due callback in time order; return how many fired."""
        fired = 0
        while True:
            live = [handle for handle in self._handles if not handle.cancelled]
            self._handles = live
            due = [handle for handle in live if handle.next_due <= now]
            if not due:
                return fired
            handle = min(due, key=lambda item: item.next_due)
            handle.next_due += handle.interval
            handle.callback()
            fired += 1


class ManualTickSource(_BaseTickSource):
    """Tick source driven by explicit `advance` calls."""

    def __init__(self) -> None:
        super().__init__()
        self._elapsed = 0.0

    def _now(self) -> float:
        return self._elapsed

    def advance(self, seconds: float) -> int:
        """Move simulated time forward and fire due callbacks."""
        self._elapsed += seconds
        return self._fire_until(self._elapsed)

    def pump(self) -> int:
        """Fire callbacks already due at the current simulated time."""
        return self._fire_until(self._elapsed)


class MonotonicTickSource(_BaseTickSource):
    """Tick source that catches up with a monotonic clock when pumped."""

    def __init__(self, clock: Clock = time.monotonic) -> None:
        super().__init__()
        self._clock = clock

    def _now(self) -> float:
        return self._clock()

    def pump(self) -> int:
        """Fire every whole interval that has elapsed since the last pump."""
        return self._fire_until(self._clock())
