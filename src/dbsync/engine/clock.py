# src/dbsync/engine/clock.py
"""Clock abstraction for testable time-dependent load logic.

Load actions stamp registry entries and compute the recent-refresh window
from the clock they are given, never from the system time directly.

Production code uses SystemClock (the default).
Tests inject MockClock to control time.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Abstract clock for load actions."""

    def now(self) -> datetime:
        """Return the current wall-clock time."""
        ...

    def monotonic(self) -> float:
        """Return monotonic time in seconds, for elapsed-time measurement."""
        ...


class SystemClock:
    """Production clock: timezone-aware UTC wall time and time.monotonic()."""

    def now(self) -> datetime:
        return datetime.now(UTC)

    def monotonic(self) -> float:
        return time.monotonic()


class MockClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = MockClock(datetime(2024, 1, 15, 12, 0))
        action = RefreshRecentLoadAction(db, spec, registry, logger, clock)
        clock.advance(3600)  # one hour later
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start if start is not None else datetime(2000, 1, 1, tzinfo=UTC)
        self._monotonic = 0.0

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._monotonic

    def advance(self, seconds: float) -> None:
        """Advance both clocks.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._now += timedelta(seconds=seconds)
        self._monotonic += seconds

    def set(self, value: datetime) -> None:
        """Set wall time to an absolute value (may move backwards)."""
        self._now = value


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
