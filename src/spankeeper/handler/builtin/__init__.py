"""Built-in span handlers.

Handlers are discovered via pluggy hooks. The BuiltinHandlersPlugin in this
module registers all built-in handlers.

Available handlers:
- LogSpanHandler ("log"): Log finished spans through structlog
- InMemorySpanHandler ("memory"): Keep spans in memory for inspection
"""

from spankeeper.handler.builtin.log import LogSpanHandler
from spankeeper.handler.builtin.memory import InMemorySpanHandler
from spankeeper.handler.hookspecs import hookimpl


class BuiltinHandlersPlugin:
    """Plugin that registers built-in span handlers."""

    @hookimpl
    def spankeeper_get_span_handlers(self) -> list[type]:
        """Return built-in handler classes."""
        return [LogSpanHandler, InMemorySpanHandler]


__all__ = [
    "BuiltinHandlersPlugin",
    "InMemorySpanHandler",
    "LogSpanHandler",
]
