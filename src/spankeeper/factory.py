# src/spankeeper/factory.py
"""Factory functions for creating PendingSpans from configuration.

This module provides the glue between configuration (RuntimeRecorderConfig)
and a runtime PendingSpans instance. It handles:
1. Discovering handler classes via pluggy hooks
2. Instantiating and configuring handlers
3. Chaining handlers and building the registry

Usage:
    from spankeeper.contracts import RuntimeRecorderConfig
    from spankeeper.core.config import load_settings
    from spankeeper.factory import create_pending_spans

    config = RuntimeRecorderConfig.from_settings(load_settings(path))
    pending_spans = create_pending_spans(config)
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any

import pluggy
import structlog

from spankeeper.contracts.config import HandlerConfig, RuntimeRecorderConfig
from spankeeper.contracts.errors import SpanHandlerError
from spankeeper.core.clock import DEFAULT_CLOCK, Clock
from spankeeper.handler.builtin import BuiltinHandlersPlugin
from spankeeper.handler.chain import create_span_handler_chain
from spankeeper.handler.hookspecs import PROJECT_NAME, SpankeeperHandlerSpec
from spankeeper.handler.protocols import SpanHandlerProtocol
from spankeeper.recorder.pending_spans import PendingSpans

logger = structlog.get_logger(__name__)


def _resolve_handler_name(handler_class: type[SpanHandlerProtocol]) -> str:
    """Resolve handler name from class metadata or a temporary instance.

    Raises:
        SpanHandlerError: If the class cannot be instantiated for name
            resolution or resolves to an invalid name.
    """
    class_name = getattr(handler_class, "__name__", None)
    if class_name is None:
        raise SpanHandlerError(
            "handler_plugins",
            f"Invalid handler declaration without __name__: {handler_class!r}",
        )

    # Prefer class-level _name to avoid instantiation
    class_dict = handler_class.__dict__
    if "_name" in class_dict:
        name_hint = class_dict["_name"]
        if type(name_hint) is str and name_hint != "":
            return name_hint
        raise SpanHandlerError(
            class_name,
            f"Handler class attribute _name must be a non-empty string, got {name_hint!r}",
        )

    try:
        handler = handler_class()
    except Exception as e:
        raise SpanHandlerError(
            class_name,
            f"Failed to instantiate handler class during discovery: {e}",
        ) from e

    resolved_name = handler.name
    if type(resolved_name) is not str or resolved_name == "":
        raise SpanHandlerError(
            class_name,
            f"Handler name must be a non-empty string, got {resolved_name!r}",
        )
    return resolved_name


def discover_handler_registry(
    handler_plugins: Iterable[Any] = (),
) -> dict[str, type[SpanHandlerProtocol]]:
    """Discover span handlers via pluggy hooks.

    Registers built-in handlers plus any plugin objects provided by the
    caller, then calls ``spankeeper_get_span_handlers`` hooks to build the
    name->class registry.

    Args:
        handler_plugins: Additional plugin objects implementing
            ``spankeeper_get_span_handlers``.

    Returns:
        Mapping of handler name to handler class.

    Raises:
        SpanHandlerError: If plugin registration fails, handler names are
            invalid, or duplicate handler names are discovered.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(SpankeeperHandlerSpec)

    for plugin in [BuiltinHandlersPlugin(), *handler_plugins]:
        try:
            plugin_manager.register(plugin)
            plugin_manager.check_pending()
        except (pluggy.PluginValidationError, ValueError) as e:
            # PluginValidationError: hook spec mismatch
            # ValueError: duplicate plugin object or plugin name
            if isinstance(e, pluggy.PluginValidationError):
                plugin_manager.unregister(plugin=plugin)
            raise SpanHandlerError(
                "handler_plugins",
                f"Invalid span handler plugin {type(plugin).__name__}: {e}",
            ) from e

    registry: dict[str, type[SpanHandlerProtocol]] = {}
    for hook_impl in plugin_manager.hook.spankeeper_get_span_handlers.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            handler_classes = hook_impl.function()
        except Exception as e:
            raise SpanHandlerError(
                "handler_plugins",
                f"Span handler plugin {plugin_name} failed in spankeeper_get_span_handlers: {e}",
            ) from e

        if handler_classes is None or type(handler_classes) in (str, bytes):
            raise SpanHandlerError(
                "handler_plugins",
                f"spankeeper_get_span_handlers in plugin {plugin_name} returned "
                f"{type(handler_classes).__name__}; expected iterable of handler classes",
            )

        for handler_class in handler_classes:
            handler_name = _resolve_handler_name(handler_class)
            if handler_name in registry:
                raise SpanHandlerError(
                    handler_name,
                    f"Duplicate span handler name '{handler_name}' discovered: "
                    f"{registry[handler_name].__name__} and {handler_class.__name__}",
                )
            registry[handler_name] = handler_class

    return registry


def _build_handlers(
    handler_configs: Iterable[HandlerConfig],
    registry: dict[str, type[SpanHandlerProtocol]],
) -> list[SpanHandlerProtocol]:
    handlers: list[SpanHandlerProtocol] = []
    for handler_config in handler_configs:
        try:
            handler_class = registry[handler_config.name]
        except KeyError:
            available = sorted(registry.keys())
            raise SpanHandlerError(
                handler_name=handler_config.name,
                message=f"Unknown span handler. Available handlers: {available}",
            ) from None

        handler = handler_class()
        handler.configure(handler_config.options)
        handlers.append(handler)
        logger.debug(
            "span_handler_configured",
            handler=handler_config.name,
            options_keys=list(handler_config.options.keys()),
        )
    return handlers


def create_pending_spans(
    config: RuntimeRecorderConfig,
    *,
    handler_plugins: Iterable[Any] = (),
    clock: Clock = DEFAULT_CLOCK,
    noop: threading.Event | None = None,
) -> PendingSpans:
    """Create a PendingSpans registry from runtime configuration.

    Each configured handler gets its own instance. When orphan handlers are
    configured separately, a name listed in both places yields two
    independent instances.

    Args:
        config: Runtime configuration from RuntimeRecorderConfig.from_settings().
        handler_plugins: Additional handler plugin objects providing
            ``spankeeper_get_span_handlers`` hooks.
        clock: Wall time and tick source
        noop: Kill switch to share with the caller. Created (and set when
            config.noop is true) if not given.

    Returns:
        PendingSpans wired to the configured handler chains.

    Raises:
        SpanHandlerError: If handler discovery fails, unknown handler names
            are configured, or handler configuration fails.
    """
    registry = discover_handler_registry(handler_plugins)

    span_handler = create_span_handler_chain(_build_handlers(config.handler_configs, registry))
    if config.orphan_handler_configs is None:
        orphaned_span_handler = span_handler
    else:
        orphaned_span_handler = create_span_handler_chain(_build_handlers(config.orphan_handler_configs, registry))

    if noop is None:
        noop = threading.Event()
    if config.noop:
        noop.set()

    if config.track_orphans:
        logger.info("orphan_tracking_enabled")

    return PendingSpans(
        clock,
        span_handler=span_handler,
        orphaned_span_handler=orphaned_span_handler,
        track_orphans=config.track_orphans,
        noop=noop,
    )
