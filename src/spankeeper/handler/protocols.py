# src/spankeeper/handler/protocols.py
"""Protocol definitions for span handlers.

Span handlers observe the lifecycle of spans: allocation, abandonment and
completion. They run synchronously on the application thread that triggered
the event, so they should do their work quickly.
"""

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from spankeeper.contracts.context import TraceContext
    from spankeeper.contracts.span import MutableSpan


@runtime_checkable
class SpanHandlerProtocol(Protocol):
    """Protocol for span handlers.

    Lifecycle:
        1. Discovery: spankeeper_get_span_handlers hook returns handler classes
        2. Instantiation: the factory creates instances
        3. Configuration: configure() called with handler-specific options
        4. Operation: handle_* called for span events (must not raise)

    Every allocation results in exactly one of handle_finish (explicit finish,
    flush or orphan) or handle_abandon, unless the span is silently dropped
    because it was orphaned while empty.

    The TraceContext passed to handle_finish for an orphaned span is a
    placeholder rebuilt from the original's identity fields. It is equal to
    the original but not the same object. Do not cache the MutableSpan, and
    hold contexts weakly if you must hold them at all.

    Error handling:
        - configure() MUST raise SpanHandlerError on invalid options
        - handle_* SHOULD NOT raise; if they do, the chain logs and continues
    """

    @property
    def name(self) -> str:
        """Handler name for configuration reference.

            handlers:
              - name: log  # matches this property
        """
        ...

    def configure(self, config: dict[str, Any]) -> None:
        """Configure the handler with options from RecorderSettings.

        Raises:
            SpanHandlerError: If options are invalid
        """
        ...

    def handle_create(self, parent: "TraceContext | None", context: "TraceContext", span: "MutableSpan") -> None:
        """Called when a span is allocated, before it is started.

        parent is None only when context is a local root.
        """
        ...

    def handle_abandon(self, context: "TraceContext", span: "MutableSpan") -> None:
        """Called when a span is abandoned instead of finished.

        Abandoned spans are not errors. Instrumentation may speculatively
        create a span (for example, for a retry) and then discard it.
        """
        ...

    def handle_finish(self, context: "TraceContext", span: "MutableSpan") -> bool:
        """Called when a span is finished, flushed or orphaned.

        Returns:
            False to stop later handlers in the chain from seeing this span
        """
        ...
