# src/spankeeper/core/clock.py
"""Clock abstraction for span timestamps.

Span timestamps need two time sources:
- Wall time (epoch microseconds) - what backends display
- Monotonic ticks (nanoseconds) - immune to wall clock adjustment

Reading wall time is comparatively expensive and can jump when the system
clock is adjusted. TickClock (spankeeper.recorder.tick_clock) reads wall time
once per local trace subtree and derives every later timestamp from ticks.

Production code uses SystemClock (the default).
Tests inject MockClock to control both time sources.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Abstract source of wall time and monotonic ticks.

    Implementations:
    - SystemClock: Uses time.time_ns() and time.monotonic_ns() (production)
    - MockClock: Returns controllable times (testing)
    """

    def current_time_microseconds(self) -> int:
        """Return wall time as epoch microseconds."""
        ...

    def monotonic_ns(self) -> int:
        """Return monotonic time in nanoseconds.

        Must never go backwards. Only differences between two readings are
        meaningful.
        """
        ...


class SystemClock:
    """Production clock backed by the time module."""

    def current_time_microseconds(self) -> int:
        """Return system wall time in epoch microseconds."""
        return time.time_ns() // 1000

    def monotonic_ns(self) -> int:
        """Return system monotonic time in nanoseconds."""
        return time.monotonic_ns()


class MockClock:
    """Controllable clock for deterministic testing.

    Wall time and ticks advance together through advance(). set_wall_time()
    moves wall time alone, simulating an NTP step or manual adjustment.

    Example:
        clock = MockClock(wall_microseconds=1_000_000)
        tick_clock = TickClock.from_clock(clock)

        clock.advance(0.005)  # 5ms
        assert tick_clock.current_time_microseconds() == 1_005_000

        clock.set_wall_time(0)  # wall clock stepped backwards
        assert tick_clock.current_time_microseconds() == 1_005_000
    """

    def __init__(self, wall_microseconds: int = 1_000_000, ticks_ns: int = 0) -> None:
        """Initialize mock clock.

        Args:
            wall_microseconds: Initial wall time in epoch microseconds.
            ticks_ns: Initial monotonic reading in nanoseconds.
        """
        self._wall = wall_microseconds
        self._ticks = ticks_ns
        self.wall_reads = 0

    def current_time_microseconds(self) -> int:
        """Return current mock wall time, counting the read."""
        self.wall_reads += 1
        return self._wall

    def monotonic_ns(self) -> int:
        """Return current mock ticks."""
        return self._ticks

    def advance(self, seconds: float) -> None:
        """Advance wall time and ticks by the same amount.

        Args:
            seconds: Amount to advance (must be non-negative).

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        nanos = round(seconds * 1_000_000_000)
        self._ticks += nanos
        self._wall += nanos // 1000

    def set_wall_time(self, wall_microseconds: int) -> None:
        """Set wall time to an absolute value without touching ticks.

        Note:
            Unlike advance(), this can move wall time backwards, exactly as a
            real system clock adjustment can.
        """
        self._wall = wall_microseconds


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
