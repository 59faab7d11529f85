# tests/unit/recorder/test_orphans.py
"""Tests for garbage-collection-driven orphan reporting.

A span is orphaned when its TraceContext becomes unreachable before the span
is finished or abandoned. Tests drop the last reference with ``del`` and then
make an unrelated registry call, which drains the reclamation queue.
"""

import gc
from typing import Any
from unittest.mock import patch

import pytest

from spankeeper.contracts.context import TraceContext
from spankeeper.contracts.span import MutableSpan
from spankeeper.core.clock import MockClock
from spankeeper.handler.builtin.memory import InMemorySpanHandler
from spankeeper.recorder.pending_spans import FLUSH_ANNOTATION, PendingSpans

pytestmark = pytest.mark.gc

# =============================================================================
# Test Doubles
# =============================================================================


class OrphanCollector:
    """Orphan handler that keeps what it was given and can be told to fail."""

    def __init__(self, *, fail_times: int = 0, error: Exception | None = None) -> None:
        self._fail_times = fail_times
        self._error = error or RuntimeError("Simulated orphan handler failure")
        self.calls = 0
        self.reported: list[tuple[TraceContext, MutableSpan]] = []

    @property
    def name(self) -> str:
        return "orphans"

    def configure(self, config: dict[str, Any]) -> None:
        pass

    def handle_create(self, parent: TraceContext | None, context: TraceContext, span: MutableSpan) -> None:
        pass

    def handle_abandon(self, context: TraceContext, span: MutableSpan) -> None:
        pass

    def handle_finish(self, context: TraceContext, span: MutableSpan) -> bool:
        self.calls += 1
        if self.calls <= self._fail_times:
            raise self._error
        self.reported.append((context, span))
        return True


def make_context(span_id: int = 1, **kwargs: Any) -> TraceContext:
    return TraceContext(trace_id_high=0, trace_id=0xBEEF, span_id=span_id, **kwargs)


def orphan(pending: PendingSpans, span_id: int, *, name: str | None = "work") -> MutableSpan:
    """Allocate a span, optionally write to it, and drop its context."""
    context = make_context(span_id)
    span = pending.get_or_create(None, context, start=name is not None).span
    if name is not None:
        span.name = name
    del context
    gc.collect()
    return span


def orphan_all(pending: PendingSpans, span_ids: list[int]) -> None:
    """Orphan several spans at once so a single drain sees all of them."""
    contexts = [make_context(span_id) for span_id in span_ids]
    for context in contexts:
        pending.get_or_create(None, context, start=True).span.name = "work"
    del contexts, context
    gc.collect()


@pytest.fixture
def collector() -> OrphanCollector:
    return OrphanCollector()


@pytest.fixture
def pending(mock_clock: MockClock, collector: OrphanCollector) -> PendingSpans:
    return PendingSpans(mock_clock, orphaned_span_handler=collector)


# =============================================================================
# Reporting
# =============================================================================


class TestOrphanReporting:
    def test_orphan_with_data_is_reported(self, pending: PendingSpans, collector: OrphanCollector, mock_clock: MockClock) -> None:
        span = orphan(pending, 1)
        mock_clock.set_wall_time(5_000_000)

        pending.get(make_context(99))

        assert len(collector.reported) == 1
        context, reported = collector.reported[0]
        assert reported is span
        assert context == make_context(1)
        assert reported.annotations == [(5_000_000, FLUSH_ANNOTATION)]
        assert reported.finish_timestamp == 0
        assert len(pending) == 0

    def test_context_goes_away_with_owner(self, pending: PendingSpans) -> None:
        context = make_context(1)
        entry = pending.get_or_create(None, context)

        del context
        gc.collect()

        assert entry.context is None

    def test_reported_at_most_once(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        orphan(pending, 1)

        pending.get(make_context(99))
        pending.get(make_context(99))
        pending.remove(make_context(1))

        assert len(collector.reported) == 1

    def test_empty_orphan_not_reported(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        orphan(pending, 1, name=None)

        pending.get(make_context(99))

        assert collector.calls == 0
        assert len(pending) == 0

    def test_any_public_call_drains(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        orphan(pending, 1)
        other = make_context(2)

        pending.get_or_create(None, other)

        assert len(collector.reported) == 1
        assert len(pending) == 1

    def test_placeholder_context_keeps_identity_fields(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        context = TraceContext(trace_id_high=7, trace_id=8, span_id=9, shared=True, sampled=True, debug=True)
        pending.get_or_create(None, context).span.name = "work"
        del context
        gc.collect()

        pending.get(make_context(99))

        placeholder, _ = collector.reported[0]
        assert placeholder.key == (7, 8, 9, True)
        assert placeholder.local_root_id == 9
        assert placeholder.sampled is True
        assert placeholder.debug is True
        assert placeholder.parent_id is None

    def test_flush_time_read_once_per_drain(self, pending: PendingSpans, collector: OrphanCollector, mock_clock: MockClock) -> None:
        orphan_all(pending, [1, 2, 3])
        reads_before = mock_clock.wall_reads

        pending.get(make_context(99))

        assert mock_clock.wall_reads == reads_before + 1
        flush_times = {span.annotations[-1] for _, span in collector.reported}
        assert len(collector.reported) == 3
        assert flush_times == {(1_000_000, FLUSH_ANNOTATION)}

    def test_memory_handler_does_not_keep_unfinished_context_alive(self, mock_clock: MockClock, collector: OrphanCollector) -> None:
        handler = InMemorySpanHandler()
        pending = PendingSpans(mock_clock, span_handler=handler, orphaned_span_handler=collector)
        span = orphan(pending, 1)

        pending.get(make_context(99))

        assert [reported for _, reported in collector.reported] == [span]
        assert handler.created == [(None, None, span)]
        assert len(pending) == 0

    def test_no_wall_read_for_empty_orphans(self, pending: PendingSpans, mock_clock: MockClock) -> None:
        orphan(pending, 1, name=None)
        reads_before = mock_clock.wall_reads

        pending.get(make_context(99))

        assert mock_clock.wall_reads == reads_before


class TestNotOrphaned:
    def test_finished_span_not_reported_when_collected(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        context = make_context(1)
        pending.get_or_create(None, context).span.name = "work"
        pending.finish(context)
        del context
        gc.collect()

        pending.get(make_context(99))

        assert collector.calls == 0

    def test_abandoned_span_not_reported_when_collected(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        context = make_context(1)
        pending.get_or_create(None, context).span.name = "work"
        pending.abandon(context)
        del context
        gc.collect()

        pending.get(make_context(99))

        assert collector.calls == 0

    def test_stale_reclamation_leaves_reused_identity_alone(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        first = make_context(1)
        pending.get_or_create(None, first)
        pending.remove(first)
        second = make_context(1)
        replacement = pending.get_or_create(None, second)
        replacement.span.name = "second"

        del first
        gc.collect()

        assert pending.get(second) is replacement
        assert collector.calls == 0


# =============================================================================
# Disabled Reporting
# =============================================================================


class TestDisabled:
    def test_kill_switch_drops_orphans(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        pending.noop.set()
        orphan(pending, 1)

        pending.get(make_context(99))

        assert collector.calls == 0
        assert len(pending) == 0

    def test_kill_switch_checked_at_drain_time(self, pending: PendingSpans, collector: OrphanCollector) -> None:
        pending.noop.set()
        orphan(pending, 1)
        pending.noop.clear()

        pending.get(make_context(99))

        assert len(collector.reported) == 1

    def test_without_orphan_handler_entries_still_removed(self, mock_clock: MockClock) -> None:
        pending = PendingSpans(mock_clock, track_orphans=True)
        orphan(pending, 1)

        with patch("spankeeper.recorder.pending_spans.logger") as mock_logger:
            pending.get(make_context(99))

        assert len(pending) == 0
        mock_logger.warning.assert_not_called()


# =============================================================================
# Diagnostics
# =============================================================================


class TestDiagnostics:
    def test_unused_span_logged(self, mock_clock: MockClock, collector: OrphanCollector) -> None:
        pending = PendingSpans(mock_clock, orphaned_span_handler=collector, track_orphans=True)
        orphan(pending, 1, name=None)

        with patch("spankeeper.recorder.pending_spans.logger") as mock_logger:
            pending.get(make_context(99))

        mock_logger.warning.assert_called_once()
        call_args = mock_logger.warning.call_args
        assert call_args[0][0] == "Span was allocated but never used"
        assert call_args[1]["context"] == str(make_context(1))
        assert call_args[1]["thread"] == "MainThread"
        assert "orphan" in call_args[1]["stack"]
        assert collector.calls == 0

    def test_unfinished_span_logged_and_reported(self, mock_clock: MockClock, collector: OrphanCollector) -> None:
        pending = PendingSpans(mock_clock, orphaned_span_handler=collector, track_orphans=True)
        orphan(pending, 1)

        with patch("spankeeper.recorder.pending_spans.logger") as mock_logger:
            pending.get(make_context(99))

        assert mock_logger.warning.call_args[0][0] == "Span neither finished nor flushed before reclamation"
        assert len(collector.reported) == 1

    def test_no_log_without_tracking(self, pending: PendingSpans) -> None:
        orphan(pending, 1)

        with patch("spankeeper.recorder.pending_spans.logger") as mock_logger:
            pending.get(make_context(99))

        mock_logger.warning.assert_not_called()


# =============================================================================
# Failure Isolation
# =============================================================================


class TestOrphanHandlerFailures:
    def test_failure_does_not_reach_caller_or_block_later_orphans(self, mock_clock: MockClock) -> None:
        collector = OrphanCollector(fail_times=1)
        pending = PendingSpans(mock_clock, orphaned_span_handler=collector)
        orphan_all(pending, [1, 2])

        pending.get(make_context(99))

        assert collector.calls == 2
        assert len(collector.reported) == 1
        assert len(pending) == 0

    def test_failure_in_one_drain_does_not_block_next_drain(self, mock_clock: MockClock) -> None:
        collector = OrphanCollector(fail_times=1)
        pending = PendingSpans(mock_clock, orphaned_span_handler=collector)
        orphan(pending, 1)
        pending.get(make_context(99))

        orphan(pending, 2)
        pending.get(make_context(99))

        assert [context.span_id for context, _ in collector.reported] == [2]

    def test_fatal_error_propagates(self, mock_clock: MockClock) -> None:
        collector = OrphanCollector(fail_times=1, error=MemoryError())
        pending = PendingSpans(mock_clock, orphaned_span_handler=collector)
        orphan(pending, 1)

        with pytest.raises(MemoryError):
            pending.get(make_context(99))

        assert len(pending) == 0
