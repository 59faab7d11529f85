# src/spankeeper/recorder/pending_spans.py
"""Registry of spans that have been allocated but not yet reported.

PendingSpans maps span identity to the span's data and clock. It is shared by
every application thread, and guarantees that exactly one PendingSpan exists
per live TraceContext, even when two threads race to materialize the same
identity (for example, both sides of a shared client/server span).

Orphan detection is driven by garbage collection, not by a timeout thread:
each entry holds its TraceContext through a weak reference. When the owner
drops the context without finishing or abandoning the span, the weak
reference's callback queues it for reclamation. The queue is drained at the
start of every public call, so reporting work is stolen from whichever caller
comes next and no background thread is needed. Orphans that carry data are
annotated with FLUSH_ANNOTATION and reported to the orphaned span handler.

Lookups compare identity value tuples (SpanKey) on both sides. A map entry is
never resolved through a weak reference, so a collected context cannot make a
lookup key unequal to its stored key.

Thread Safety:
    All public methods are safe to call from any thread. A lock guards
    insert-if-absent and detach; lookups and an empty reclamation queue take
    no lock. Field-level access to a returned MutableSpan is NOT
    synchronized; its owner is responsible for that.
"""

from __future__ import annotations

import threading
import traceback
import weakref
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from spankeeper.contracts.context import SpanKey, TraceContext
from spankeeper.contracts.span import MutableSpan
from spankeeper.core.clock import DEFAULT_CLOCK, Clock
from spankeeper.handler.chain import NOOP_SPAN_HANDLER, create_span_handler_chain
from spankeeper.handler.protocols import SpanHandlerProtocol
from spankeeper.recorder.tick_clock import TickClock

logger = structlog.get_logger(__name__)

# Annotation added to orphaned spans before they are reported
FLUSH_ANNOTATION = "spankeeper.flush"


@dataclass(frozen=True, slots=True)
class AllocationSite:
    """Where a span was allocated, recorded when orphan tracking is on."""

    thread_name: str
    frames: tuple[traceback.FrameSummary, ...]

    @classmethod
    def capture(cls) -> AllocationSite:
        # Drop this frame and PendingSpans.get_or_create
        frames = traceback.extract_stack()[:-2]
        return cls(threading.current_thread().name, tuple(frames))

    def format(self) -> str:
        return "".join(traceback.format_list(list(self.frames)))


class _ContextRef(weakref.ref):  # type: ignore[type-arg]
    """Weak reference to a TraceContext that remembers its identity fields.

    The fields outlive the referent so a placeholder context can be rebuilt
    when reporting an orphan.
    """

    def __init__(self, context: TraceContext, callback: Callable[[_ContextRef], object]) -> None:
        super().__init__(context, callback)
        self.key: SpanKey = context.key
        self.local_root_id = context.local_root_id
        self.sampled = context.sampled
        self.debug = context.debug

    def to_context(self) -> TraceContext:
        """Build a context equal to the collected one.

        The parent id is not retained; the placeholder only needs to identify
        the span.
        """
        trace_id_high, trace_id, span_id, shared = self.key
        return TraceContext(
            trace_id_high=trace_id_high,
            trace_id=trace_id,
            span_id=span_id,
            shared=shared,
            local_root_id=self.local_root_id,
            sampled=self.sampled,
            debug=self.debug,
        )

    def __repr__(self) -> str:
        context = self()
        return f"WeakReference({context})" if context is not None else "ClearedReference()"


@dataclass(slots=True, eq=False)
class PendingSpan:
    """Registry entry: span data plus the clock its timestamps derive from.

    Attributes:
        context_ref: Weak reference to the owning TraceContext
        span: Data recorded by instrumentation
        clock: Clock shared with the local trace subtree
        caller: Allocation site, when orphan tracking is on
    """

    context_ref: _ContextRef
    span: MutableSpan
    clock: TickClock
    caller: AllocationSite | None = None

    @property
    def context(self) -> TraceContext | None:
        """The owning context, or None once it has been collected."""
        return self.context_ref()


class PendingSpans:
    """Concurrent registry of in-flight spans with GC-driven orphan reporting.

    Example:
        >>> pending = PendingSpans(span_handler=handler_chain)
        >>> root = pending.get_or_create(None, root_context, start=True)
        >>> root.span.name = "get /users"
        >>> pending.finish(root_context)
        True
    """

    def __init__(
        self,
        clock: Clock = DEFAULT_CLOCK,
        *,
        span_handler: SpanHandlerProtocol = NOOP_SPAN_HANDLER,
        orphaned_span_handler: SpanHandlerProtocol = NOOP_SPAN_HANDLER,
        track_orphans: bool = False,
        noop: threading.Event | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            clock: Wall time and tick source for new local roots
            span_handler: Receives create, abandon and finish events
            orphaned_span_handler: Receives handle_finish for orphans with data.
                The no-op handler disables orphan reporting entirely.
            track_orphans: Record allocation sites and log them when a span
                is reclaimed without being finished
            noop: Kill switch. While set, orphans are dropped unreported.
        """
        self._clock = clock
        # Chaining a single handler wraps it for failure isolation
        self._span_handler = create_span_handler_chain([span_handler])
        self._orphaned_span_handler = create_span_handler_chain([orphaned_span_handler])
        self._track_orphans = track_orphans
        self._noop = noop if noop is not None else threading.Event()

        self._spans: dict[SpanKey, PendingSpan] = {}
        self._lock = threading.Lock()
        # Filled by weakref callbacks, from whichever thread collects a context
        self._reclaimed: deque[_ContextRef] = deque()

    @property
    def noop(self) -> threading.Event:
        """Kill switch shared with the caller."""
        return self._noop

    def get(self, context: TraceContext) -> PendingSpan | None:
        """Return the pending span for context, or None if there is none.

        Raises:
            ValueError: If context is None
        """
        if context is None:
            raise ValueError("context is None")
        self._report_orphaned_spans()
        return self._spans.get(context.key)

    def get_or_create(self, parent: TraceContext | None, context: TraceContext, start: bool = False) -> PendingSpan:
        """Return the pending span for context, allocating it if needed.

        A new span reuses its parent's clock when the parent is pending, so
        only the first span of a local subtree reads wall time.

        Args:
            parent: Parent context, or None when context is a local root
            context: Identity of the span
            start: Record the start timestamp on a newly allocated span

        Returns:
            The single PendingSpan for this identity

        Raises:
            ValueError: If context is None
        """
        existing = self.get(context)
        if existing is not None:
            return existing

        span = MutableSpan()
        if context.shared:
            span.set_shared()

        parent_entry = self.get(parent) if parent is not None else None
        if parent_entry is not None:
            clock = parent_entry.clock
            if start:
                span.start_timestamp = clock.current_time_microseconds()
        else:
            clock = TickClock.from_clock(self._clock)
            if start:
                span.start_timestamp = clock.base_epoch_microseconds

        # A span with neither a parent nor local root status is a caller bug
        assert parent is not None or context.is_local_root, f"Span {context} has no parent and is not a local root"

        entry = PendingSpan(_ContextRef(context, self._reclaimed.append), span, clock)
        with self._lock:
            winner = self._spans.setdefault(context.key, entry)
        if winner is not entry:
            # Lost the race. Nothing outside this call has seen our entry.
            return winner

        if self._track_orphans:
            entry.caller = AllocationSite.capture()
        self._span_handler.handle_create(parent, context, span)
        return entry

    def abandon(self, context: TraceContext) -> bool:
        """Drop the pending span without reporting it.

        Notifies handle_abandon when an entry was detached.

        Returns:
            True if a pending span was abandoned

        Raises:
            ValueError: If context is None
        """
        entry = self._detach(context)
        self._report_orphaned_spans()
        if entry is None:
            return False
        self._span_handler.handle_abandon(context, entry.span)
        return True

    def remove(self, context: TraceContext) -> bool:
        """Detach the pending span without notifying handlers.

        Returns:
            True if a pending span existed

        Raises:
            ValueError: If context is None
        """
        entry = self._detach(context)
        self._report_orphaned_spans()
        return entry is not None

    def finish(self, context: TraceContext, finish_timestamp: int = 0) -> bool:
        """Detach the pending span and report it as finished.

        Args:
            context: Identity of the span
            finish_timestamp: Epoch microseconds, or 0 to read the span's clock

        Returns:
            True if a pending span was finished. False means it was already
            finished, abandoned or reclaimed.

        Raises:
            ValueError: If context is None
        """
        entry = self._detach(context)
        self._report_orphaned_spans()
        if entry is None:
            return False
        if not finish_timestamp:
            finish_timestamp = entry.clock.current_time_microseconds()
        entry.span.finish_timestamp = finish_timestamp
        self._span_handler.handle_finish(context, entry.span)
        return True

    def flush(self, context: TraceContext) -> bool:
        """Detach the pending span and report it without a finish timestamp.

        Used when the span will complete elsewhere, such as a one-way message
        whose receiver finishes the shared span.

        Returns:
            True if a pending span was flushed

        Raises:
            ValueError: If context is None
        """
        entry = self._detach(context)
        self._report_orphaned_spans()
        if entry is None:
            return False
        self._span_handler.handle_finish(context, entry.span)
        return True

    def current_time_microseconds(self, context: TraceContext) -> int:
        """Timestamp consistent with the span's trace, or wall time if not pending."""
        entry = self.get(context)
        if entry is not None:
            return entry.clock.current_time_microseconds()
        return self._clock.current_time_microseconds()

    def _detach(self, context: TraceContext) -> PendingSpan | None:
        if context is None:
            raise ValueError("context is None")
        with self._lock:
            return self._spans.pop(context.key, None)

    def _report_orphaned_spans(self) -> None:
        """Report spans whose contexts were garbage collected.

        This runs on the critical path of unrelated traced operations. Wall
        time is read at most once per drain, however many orphans are queued.
        """
        if not self._reclaimed:
            return

        noop = self._orphaned_span_handler is NOOP_SPAN_HANDLER or self._noop.is_set()
        flush_time = 0
        while True:
            try:
                context_ref = self._reclaimed.popleft()
            except IndexError:
                break

            with self._lock:
                entry = self._spans.get(context_ref.key)
                # Finished, abandoned, or replaced by a new span reusing the identity
                if entry is None or entry.context_ref is not context_ref:
                    continue
                del self._spans[context_ref.key]

            if noop:
                continue

            span = entry.span
            is_empty = span.is_empty()
            context = context_ref.to_context()

            if entry.caller is not None:
                message = (
                    "Span was allocated but never used"
                    if is_empty
                    else "Span neither finished nor flushed before reclamation"
                )
                logger.warning(
                    message,
                    context=str(context),
                    thread=entry.caller.thread_name,
                    stack=entry.caller.format(),
                )
            if is_empty:
                continue

            if not flush_time:
                flush_time = self._clock.current_time_microseconds()
            span.annotate(flush_time, FLUSH_ANNOTATION)
            self._orphaned_span_handler.handle_finish(context, span)

    def __len__(self) -> int:
        """Number of pending spans, including ones awaiting reclamation."""
        return len(self._spans)

    def __repr__(self) -> str:
        return f"PendingSpans({[entry.context_ref for entry in list(self._spans.values())]!r})"
