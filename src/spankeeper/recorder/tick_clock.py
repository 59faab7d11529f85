# src/spankeeper/recorder/tick_clock.py
"""Clock shared by every span in a local trace subtree.

The first span of a subtree pays for one wall clock read. Its children reuse
the same TickClock, so their timestamps are derived from monotonic ticks:

    wall_at(now) = base_epoch_microseconds + (now - base_tick_nanoseconds) // 1000

Timestamps from one TickClock never go backwards, even if the system wall
clock is adjusted while the trace is in flight. Durations between spans of the
same subtree are therefore always consistent.
"""

from __future__ import annotations

from dataclasses import dataclass

from spankeeper.core.clock import Clock


@dataclass(frozen=True, slots=True)
class TickClock:
    """Derives epoch microseconds from a single wall sample and monotonic ticks.

    Attributes:
        clock: Source of monotonic ticks
        base_epoch_microseconds: Wall time sampled when this clock was created
        base_tick_nanoseconds: Monotonic reading taken at the same instant
    """

    clock: Clock
    base_epoch_microseconds: int
    base_tick_nanoseconds: int

    @classmethod
    def from_clock(cls, clock: Clock) -> TickClock:
        """Create a TickClock anchored at the current instant of clock."""
        return cls(clock, clock.current_time_microseconds(), clock.monotonic_ns())

    def current_time_microseconds(self) -> int:
        elapsed_ns = self.clock.monotonic_ns() - self.base_tick_nanoseconds
        return self.base_epoch_microseconds + elapsed_ns // 1000

    def __repr__(self) -> str:
        return f"TickClock(base_epoch_microseconds={self.base_epoch_microseconds}, base_tick_nanoseconds={self.base_tick_nanoseconds})"
