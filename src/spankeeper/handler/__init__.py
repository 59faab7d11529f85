"""Span handlers: lifecycle observers and the chain that isolates them.

Components:
- protocols: SpanHandlerProtocol for implementing handlers
- chain: create_span_handler_chain() and NOOP_SPAN_HANDLER
- hookspecs: pluggy hooks for handler discovery
- builtin: built-in handlers (LogSpanHandler, InMemorySpanHandler)

Wiring handlers from configuration lives in spankeeper.factory.
"""

from spankeeper.handler.builtin import BuiltinHandlersPlugin, InMemorySpanHandler, LogSpanHandler
from spankeeper.handler.chain import NOOP_SPAN_HANDLER, NoopSpanHandler, SafeSpanHandler, create_span_handler_chain
from spankeeper.handler.protocols import SpanHandlerProtocol

__all__ = [
    "NOOP_SPAN_HANDLER",
    "BuiltinHandlersPlugin",
    "InMemorySpanHandler",
    "LogSpanHandler",
    "NoopSpanHandler",
    "SafeSpanHandler",
    "SpanHandlerProtocol",
    "create_span_handler_chain",
]
