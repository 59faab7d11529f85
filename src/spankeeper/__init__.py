"""
spankeeper: span-lifecycle core for distributed-tracing instrumentation.

Tracks spans from allocation through completion, reports spans that were
never closed when their identity is garbage collected, and dispatches
lifecycle events to an isolated chain of span handlers.
"""

__version__ = "0.1.0"
