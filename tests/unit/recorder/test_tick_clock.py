# tests/unit/recorder/test_tick_clock.py
"""Tests for TickClock timestamp derivation."""

from hypothesis import given
from hypothesis import strategies as st

from spankeeper.core.clock import MockClock
from spankeeper.recorder.tick_clock import TickClock


class TestTickClock:
    def test_query_adds_elapsed_ticks_to_wall_sample(self) -> None:
        clock = MockClock(wall_microseconds=0, ticks_ns=123_456_789)
        tick_clock = TickClock(clock, base_epoch_microseconds=1_000_000, base_tick_nanoseconds=123_456_789)

        clock.advance(0.005)  # 5_000_000ns

        assert tick_clock.current_time_microseconds() == 1_005_000

    def test_from_clock_reads_wall_time_once(self, mock_clock: MockClock) -> None:
        tick_clock = TickClock.from_clock(mock_clock)
        for _ in range(10):
            tick_clock.current_time_microseconds()

        assert mock_clock.wall_reads == 1
        assert tick_clock.base_epoch_microseconds == 1_000_000
        assert tick_clock.base_tick_nanoseconds == 0

    def test_unaffected_by_wall_clock_adjustment(self, mock_clock: MockClock) -> None:
        tick_clock = TickClock.from_clock(mock_clock)

        mock_clock.advance(1)
        mock_clock.set_wall_time(0)  # wall clock stepped back

        assert tick_clock.current_time_microseconds() == 2_000_000

    def test_sub_microsecond_ticks_truncate(self, mock_clock: MockClock) -> None:
        tick_clock = TickClock.from_clock(mock_clock)

        mock_clock.advance(0.000_000_999)

        assert tick_clock.current_time_microseconds() == 1_000_000

    @given(
        wall=st.integers(min_value=0, max_value=1 << 53),
        base_ticks=st.integers(min_value=0, max_value=1 << 62),
        steps=st.lists(st.integers(min_value=0, max_value=10**12), max_size=20),
    )
    def test_non_decreasing(self, wall: int, base_ticks: int, steps: list[int]) -> None:
        clock = MockClock(wall_microseconds=wall, ticks_ns=base_ticks)
        tick_clock = TickClock.from_clock(clock)

        readings = [tick_clock.current_time_microseconds()]
        for step in steps:
            clock.advance(step / 1_000_000_000)
            readings.append(tick_clock.current_time_microseconds())

        assert readings == sorted(readings)
        assert readings[0] == wall
