# src/spankeeper/handler/builtin/memory.py
"""In-memory handler that keeps every span it sees.

Useful in tests and in tools that inspect spans after the fact. Spans are
held strongly, so do not leave this handler installed in long-running
production processes.

Contexts seen on create and abandon are held weakly. A strong reference
would keep an unfinished span's context alive, and its orphan would never be
reported. Contexts of finished spans are kept, since the registry no longer
tracks them.
"""

from __future__ import annotations

import threading
import weakref
from typing import TYPE_CHECKING, Any

from spankeeper.contracts.errors import SpanHandlerError

if TYPE_CHECKING:
    from spankeeper.contracts.context import TraceContext
    from spankeeper.contracts.span import MutableSpan


def _ref(context: TraceContext | None) -> weakref.ref[TraceContext] | None:
    return weakref.ref(context) if context is not None else None


def _deref(ref: weakref.ref[TraceContext] | None) -> TraceContext | None:
    return ref() if ref is not None else None


class InMemorySpanHandler:
    """Collect created, abandoned and finished spans.

    Configuration options:
        max_spans: Stop collecting finished spans after this many (default
            unlimited). Spans past the limit are counted in `dropped`.

    In `created` and `abandoned`, a context that has since been garbage
    collected reads as None.

    Thread Safety:
        Safe to call from any thread. Reads return snapshots.
    """

    _name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._max_spans: int | None = None
        self._created: list[tuple[weakref.ref[TraceContext] | None, weakref.ref[TraceContext] | None, MutableSpan]] = []
        self._abandoned: list[tuple[weakref.ref[TraceContext] | None, MutableSpan]] = []
        self._finished: list[tuple[TraceContext, MutableSpan]] = []
        self._dropped = 0

    @property
    def name(self) -> str:
        return self._name

    def configure(self, config: dict[str, Any]) -> None:
        """Configure the handler.

        Raises:
            SpanHandlerError: If max_spans is not a positive integer
        """
        max_spans = config.get("max_spans")
        if max_spans is not None and (type(max_spans) is not int or max_spans < 1):
            raise SpanHandlerError(self._name, f"'max_spans' must be a positive integer, got {max_spans!r}")
        self._max_spans = max_spans

    def handle_create(self, parent: TraceContext | None, context: TraceContext, span: MutableSpan) -> None:
        with self._lock:
            self._created.append((_ref(parent), _ref(context), span))

    def handle_abandon(self, context: TraceContext, span: MutableSpan) -> None:
        with self._lock:
            self._abandoned.append((_ref(context), span))

    def handle_finish(self, context: TraceContext, span: MutableSpan) -> bool:
        with self._lock:
            if self._max_spans is not None and len(self._finished) >= self._max_spans:
                self._dropped += 1
            else:
                self._finished.append((context, span))
        return True

    @property
    def created(self) -> list[tuple[TraceContext | None, TraceContext | None, MutableSpan]]:
        with self._lock:
            return [(_deref(parent), _deref(context), span) for parent, context, span in self._created]

    @property
    def abandoned(self) -> list[tuple[TraceContext | None, MutableSpan]]:
        with self._lock:
            return [(_deref(context), span) for context, span in self._abandoned]

    @property
    def finished(self) -> list[tuple[TraceContext, MutableSpan]]:
        with self._lock:
            return list(self._finished)

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def clear(self) -> None:
        with self._lock:
            self._created.clear()
            self._abandoned.clear()
            self._finished.clear()
            self._dropped = 0

    def __len__(self) -> int:
        """Number of finished spans collected."""
        with self._lock:
            return len(self._finished)
