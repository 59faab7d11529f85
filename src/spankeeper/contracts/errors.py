# src/spankeeper/contracts/errors.py
"""Exceptions and error classification for span recording.

Span handlers are user code and may have bugs. Their failures are logged and
swallowed so they never reach instrumented application code. The one
exception to that rule is a process-level failure: running out of memory or
stack cannot be handled by logging and continuing, so those errors propagate.
"""

# Errors that must never be swallowed by handler isolation
FATAL_ERRORS: tuple[type[BaseException], ...] = (MemoryError, RecursionError)


class SpanHandlerError(Exception):
    """Raised when a span handler cannot be discovered or configured.

    This is raised during setup (discovery, configure), NOT during dispatch.
    Dispatch failures are logged instead.

    Attributes:
        handler_name: Name of the handler that failed
        message: Human-readable error description
    """

    def __init__(self, handler_name: str, message: str) -> None:
        self.handler_name = handler_name
        self.message = message
        super().__init__(f"Span handler '{handler_name}' failed: {message}")


def propagate_if_fatal(error: BaseException) -> None:
    """Re-raise error if it is fatal to the process.

    Call from an ``except Exception`` block before logging and continuing.
    """
    if isinstance(error, FATAL_ERRORS):
        raise error
