# src/spankeeper/handler/builtin/log.py
"""Log handler for finished spans.

Writes one structured log event per finished span through structlog.
Primarily used for local debugging and as a reference handler.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, TypeGuard

import structlog

from spankeeper.contracts.errors import SpanHandlerError

if TYPE_CHECKING:
    from spankeeper.contracts.context import TraceContext
    from spankeeper.contracts.span import MutableSpan

logger = structlog.get_logger(__name__)

_Level = Literal["debug", "info", "warning"]


def _is_valid_level(v: str) -> TypeGuard[_Level]:
    """TypeGuard for level validation - enables mypy type narrowing."""
    return v in {"debug", "info", "warning"}


class LogSpanHandler:
    """Log finished spans.

    Configuration options:
        level: Log level - "debug", "info" (default) or "warning"
        include_tags: Include tags and annotations in the event (default true)

    Example configuration:
        handlers:
          - name: log
            options:
              level: debug
              include_tags: false
    """

    _name = "log"

    _VALID_LEVELS: frozenset[str] = frozenset({"debug", "info", "warning"})

    def __init__(self) -> None:
        """Initialize unconfigured handler."""
        self._level: _Level = "info"
        self._include_tags = True

    @property
    def name(self) -> str:
        return self._name

    def configure(self, config: dict[str, Any]) -> None:
        """Configure the handler.

        Raises:
            SpanHandlerError: If option values are invalid
        """
        level_value = config.get("level", "info")
        if not isinstance(level_value, str):
            raise SpanHandlerError(
                self._name,
                f"'level' must be a string, got {type(level_value).__name__}",
            )
        level_value = level_value.lower()
        if _is_valid_level(level_value):
            self._level = level_value
        else:
            raise SpanHandlerError(
                self._name,
                f"Invalid level '{level_value}'. Must be one of: {', '.join(sorted(self._VALID_LEVELS))}",
            )

        include_tags = config.get("include_tags", True)
        if not isinstance(include_tags, bool):
            raise SpanHandlerError(
                self._name,
                f"'include_tags' must be a boolean, got {type(include_tags).__name__}",
            )
        self._include_tags = include_tags

    def handle_create(self, parent: TraceContext | None, context: TraceContext, span: MutableSpan) -> None:
        pass

    def handle_abandon(self, context: TraceContext, span: MutableSpan) -> None:
        pass

    def handle_finish(self, context: TraceContext, span: MutableSpan) -> bool:
        fields: dict[str, Any] = {
            "trace_id": context.trace_id_string(),
            "span_id": context.span_id_string(),
            "parent_id": context.parent_id_string(),
            "span_name": span.name,
            "kind": span.kind.value if span.kind is not None else None,
            "start_timestamp": span.start_timestamp,
            "finish_timestamp": span.finish_timestamp,
        }
        if span.start_timestamp and span.finish_timestamp:
            fields["duration_us"] = span.finish_timestamp - span.start_timestamp
        if span.error is not None:
            fields["error"] = repr(span.error)
        if self._include_tags:
            fields["tags"] = dict(span.tags)
            fields["annotations"] = [value for _, value in span.annotations]

        getattr(logger, self._level)("Span finished", **fields)
        return True
