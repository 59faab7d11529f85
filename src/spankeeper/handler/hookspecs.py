# src/spankeeper/handler/hookspecs.py
"""pluggy hook specifications for span handlers.

Handler plugins implement these hooks to register handler classes with the
factory. create_pending_spans() calls these hooks to discover the handlers
named in RecorderSettings.

Usage (implementing a handler plugin):
    from spankeeper.handler.hookspecs import hookimpl

    class MyHandlerPlugin:
        @hookimpl
        def spankeeper_get_span_handlers(self):
            return [MySpanHandler]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from spankeeper.handler.protocols import SpanHandlerProtocol

PROJECT_NAME = "spankeeper"

# Hook specification marker
hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for handler plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class SpankeeperHandlerSpec:
    """Hook specifications for span handler plugins."""

    @hookspec
    def spankeeper_get_span_handlers(self) -> list[type["SpanHandlerProtocol"]]:  # type: ignore[empty-body]
        """Return span handler classes.

        Returns:
            List of handler classes (not instances) that implement
            SpanHandlerProtocol
        """
