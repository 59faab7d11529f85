# src/spankeeper/contracts/context.py
"""Span identity value type.

A TraceContext identifies one span within a trace. It is owned by the caller
(instrumentation or propagation code) and never mutated. Propagation
boundaries routinely rebuild contexts from headers, so equality and hashing
are defined over identity fields rather than object identity: two contexts
with the same trace id, span id and shared flag are the same span.

Contexts are weakly referenceable. The pending span registry relies on this to
notice when a span's owner drops its context without finishing the span.
"""

from dataclasses import dataclass, field

_MAX_ID = (1 << 64) - 1

# (trace_id_high, trace_id, span_id, shared)
SpanKey = tuple[int, int, int, bool]


def _validate_id(name: str, value: int, *, allow_zero: bool = False) -> None:
    if type(value) is not int:
        raise ValueError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0 or value > _MAX_ID:
        raise ValueError(f"{name} must fit in an unsigned 64-bit integer, got {value}")
    if value == 0 and not allow_zero:
        raise ValueError(f"{name} must not be zero")


@dataclass(frozen=True, slots=True, weakref_slot=True)
class TraceContext:
    """Immutable identity of a span.

    Attributes:
        trace_id_high: Upper 64 bits of a 128-bit trace id, or 0 for 64-bit ids
        trace_id: Lower 64 bits of the trace id
        span_id: Id of this span
        shared: True when the span id is shared with the remote side of a call
        local_root_id: Span id of the first span of this trace in this process
        parent_id: Id of the parent span, or None for a root
        sampled: Sampling decision, or None when not yet decided
        debug: True when the trace is forced to be recorded
    """

    trace_id_high: int
    trace_id: int
    span_id: int
    shared: bool = False
    local_root_id: int = field(default=0, compare=False)
    parent_id: int | None = field(default=None, compare=False)
    sampled: bool | None = field(default=None, compare=False)
    debug: bool = field(default=False, compare=False)

    def __post_init__(self) -> None:
        _validate_id("trace_id_high", self.trace_id_high, allow_zero=True)
        _validate_id("trace_id", self.trace_id)
        _validate_id("span_id", self.span_id)
        if self.local_root_id == 0:
            # A context built without a local root is its own local root
            object.__setattr__(self, "local_root_id", self.span_id)
        _validate_id("local_root_id", self.local_root_id)
        if self.parent_id is not None:
            _validate_id("parent_id", self.parent_id)

    @property
    def is_local_root(self) -> bool:
        """True when this span has no parent known to this process."""
        return self.local_root_id == self.span_id

    @property
    def key(self) -> SpanKey:
        """Value tuple that decides equality with other contexts."""
        return (self.trace_id_high, self.trace_id, self.span_id, self.shared)

    def trace_id_string(self) -> str:
        """Lower-hex trace id, 32 characters when 128-bit."""
        if self.trace_id_high:
            return f"{self.trace_id_high:016x}{self.trace_id:016x}"
        return f"{self.trace_id:016x}"

    def span_id_string(self) -> str:
        """Lower-hex span id, always 16 characters."""
        return f"{self.span_id:016x}"

    def parent_id_string(self) -> str | None:
        if self.parent_id is None:
            return None
        return f"{self.parent_id:016x}"

    def __str__(self) -> str:
        return f"{self.trace_id_string()}/{self.span_id_string()}"
