# src/spankeeper/handler/chain.py
"""Ordered, failure-isolated dispatch to span handlers.

create_span_handler_chain() collapses a list of handlers into one handler:
- no handlers: the shared NOOP_SPAN_HANDLER singleton
- one handler: a pass-through wrapper (no loop)
- several: a tuple-backed fan-out

All three behave identically. The split only avoids loop overhead on the hot
path, which runs on application threads for every span.

Failure isolation:
    Every call into a handler is wrapped individually. A handler exception is
    logged and the next handler still runs; nothing reaches the instrumented
    caller. Fatal errors (see spankeeper.contracts.errors.FATAL_ERRORS)
    propagate unmodified.

Dispatch order:
    handle_create and handle_abandon always reach every handler, in order.
    handle_finish runs handlers in order and stops at the first one that
    returns False. A handler that raises during handle_finish does not veto.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import structlog

from spankeeper.contracts.errors import propagate_if_fatal
from spankeeper.handler.protocols import SpanHandlerProtocol

if TYPE_CHECKING:
    from spankeeper.contracts.context import TraceContext
    from spankeeper.contracts.span import MutableSpan

logger = structlog.get_logger(__name__)


class NoopSpanHandler:
    """Handler that ignores every event.

    Use NOOP_SPAN_HANDLER instead of None so call sites never branch. The
    registry compares against the singleton to skip orphan reporting work.
    """

    _name = "noop"

    @property
    def name(self) -> str:
        return self._name

    def configure(self, config: dict[str, Any]) -> None:
        pass

    def handle_create(self, parent: TraceContext | None, context: TraceContext, span: MutableSpan) -> None:
        pass

    def handle_abandon(self, context: TraceContext, span: MutableSpan) -> None:
        pass

    def handle_finish(self, context: TraceContext, span: MutableSpan) -> bool:
        return True

    def __repr__(self) -> str:
        return "NoopSpanHandler()"


NOOP_SPAN_HANDLER = NoopSpanHandler()


def _handler_name(handler: object) -> str:
    # Observers only have to implement the hooks; name is optional
    try:
        name = getattr(handler, "name", None)
    except Exception as e:
        propagate_if_fatal(e)
        name = None
    return name if isinstance(name, str) and name else type(handler).__name__


def _error_text(error: Exception) -> str:
    try:
        return str(error)
    except Exception as e:
        propagate_if_fatal(e)
        return f"<unprintable {type(error).__name__}>"


def _log_failure(handler: SpanHandlerProtocol, hook: str, context: TraceContext, error: Exception) -> None:
    logger.warning(
        "Span handler failed",
        handler=_handler_name(handler),
        hook=hook,
        context=str(context),
        error=_error_text(error),
        error_type=type(error).__name__,
    )


def _create(handler: SpanHandlerProtocol, parent: TraceContext | None, context: TraceContext, span: MutableSpan) -> None:
    try:
        handler.handle_create(parent, context, span)
    except Exception as e:
        propagate_if_fatal(e)
        _log_failure(handler, "create", context, e)


def _abandon(handler: SpanHandlerProtocol, context: TraceContext, span: MutableSpan) -> None:
    try:
        handler.handle_abandon(context, span)
    except Exception as e:
        propagate_if_fatal(e)
        _log_failure(handler, "abandon", context, e)


def _finish(handler: SpanHandlerProtocol, context: TraceContext, span: MutableSpan) -> bool:
    """Returns False only when the handler explicitly vetoed."""
    try:
        return handler.handle_finish(context, span) is not False
    except Exception as e:
        propagate_if_fatal(e)
        _log_failure(handler, "finish", context, e)
        return True


class SafeSpanHandler(ABC):
    """Base for chains. Logs handler exceptions instead of raising them."""

    _name = "chain"

    @property
    def name(self) -> str:
        return self._name

    @property
    @abstractmethod
    def handlers(self) -> tuple[SpanHandlerProtocol, ...]:
        """Wrapped handlers, in dispatch order."""

    def configure(self, config: dict[str, Any]) -> None:
        """Chains are assembled from already configured handlers."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({list(self.handlers)!r})"


class _SingleSpanHandler(SafeSpanHandler):
    def __init__(self, delegate: SpanHandlerProtocol) -> None:
        self._delegate = delegate

    @property
    def handlers(self) -> tuple[SpanHandlerProtocol, ...]:
        return (self._delegate,)

    def handle_create(self, parent: TraceContext | None, context: TraceContext, span: MutableSpan) -> None:
        _create(self._delegate, parent, context, span)

    def handle_abandon(self, context: TraceContext, span: MutableSpan) -> None:
        _abandon(self._delegate, context, span)

    def handle_finish(self, context: TraceContext, span: MutableSpan) -> bool:
        return _finish(self._delegate, context, span)


class _MultipleSpanHandler(SafeSpanHandler):
    def __init__(self, handlers: tuple[SpanHandlerProtocol, ...]) -> None:
        self._handlers = handlers

    @property
    def handlers(self) -> tuple[SpanHandlerProtocol, ...]:
        return self._handlers

    def handle_create(self, parent: TraceContext | None, context: TraceContext, span: MutableSpan) -> None:
        for handler in self._handlers:
            _create(handler, parent, context, span)

    def handle_abandon(self, context: TraceContext, span: MutableSpan) -> None:
        for handler in self._handlers:
            _abandon(handler, context, span)

    def handle_finish(self, context: TraceContext, span: MutableSpan) -> bool:
        for handler in self._handlers:
            if not _finish(handler, context, span):
                return False
        return True


def create_span_handler_chain(handlers: Iterable[SpanHandlerProtocol]) -> SpanHandlerProtocol:
    """Collapse handlers into a single failure-isolated handler.

    Nested chains are flattened and no-op handlers are dropped, so the
    result never wraps a wrapper.

    Args:
        handlers: Handlers in dispatch order

    Returns:
        NOOP_SPAN_HANDLER, or a SafeSpanHandler over the remaining handlers
    """
    flattened: list[SpanHandlerProtocol] = []
    for handler in handlers:
        if handler is None:
            raise ValueError("span handler must not be None")
        if isinstance(handler, SafeSpanHandler):
            flattened.extend(handler.handlers)
        elif handler is not NOOP_SPAN_HANDLER:
            flattened.append(handler)

    if not flattened:
        return NOOP_SPAN_HANDLER
    if len(flattened) == 1:
        return _SingleSpanHandler(flattened[0])
    return _MultipleSpanHandler(tuple(flattened))
