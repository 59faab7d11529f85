"""Core infrastructure: clocks and configuration."""

from spankeeper.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from spankeeper.core.config import RecorderSettings, SpanHandlerSettings, load_settings

__all__ = [
    "DEFAULT_CLOCK",
    "Clock",
    "MockClock",
    "RecorderSettings",
    "SpanHandlerSettings",
    "SystemClock",
    "load_settings",
]
