"""Span recording: the pending span registry and its clocks.

Components:
- pending_spans: PendingSpans registry with GC-driven orphan reporting
- tick_clock: TickClock shared across a local trace subtree
"""

from spankeeper.recorder.pending_spans import FLUSH_ANNOTATION, AllocationSite, PendingSpan, PendingSpans
from spankeeper.recorder.tick_clock import TickClock

__all__ = [
    "FLUSH_ANNOTATION",
    "AllocationSite",
    "PendingSpan",
    "PendingSpans",
    "TickClock",
]
