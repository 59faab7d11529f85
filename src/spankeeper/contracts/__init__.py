"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core, recorder
or handler. Settings classes are NOT re-exported here - import them from
spankeeper.core.config.

Import patterns:
    from spankeeper.contracts import MutableSpan, TraceContext
    from spankeeper.core.config import RecorderSettings
"""

from spankeeper.contracts.config import HandlerConfig, RuntimeRecorderConfig
from spankeeper.contracts.context import SpanKey, TraceContext
from spankeeper.contracts.errors import FATAL_ERRORS, SpanHandlerError, propagate_if_fatal
from spankeeper.contracts.span import Kind, MutableSpan

__all__ = [
    "FATAL_ERRORS",
    "HandlerConfig",
    "Kind",
    "MutableSpan",
    "RuntimeRecorderConfig",
    "SpanHandlerError",
    "SpanKey",
    "TraceContext",
    "propagate_if_fatal",
]
