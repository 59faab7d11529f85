# src/spankeeper/contracts/span.py
"""Mutable span data.

MutableSpan is the container instrumentation writes into while a span is in
flight. The same instance is handed to span handlers on create, abandon and
finish, so handlers always observe what instrumentation wrote. No copies are
made for reporting.

Thread Safety:
    NOT thread-safe. A span is expected to be mutated by the single logical
    owner of its context. The registry only guarantees that exactly one
    MutableSpan exists per live span identity.
"""

from dataclasses import dataclass, field
from enum import Enum


class Kind(str, Enum):
    """Remote relationship of a span.

    Uses (str, Enum) so the value serializes directly in log output.
    """

    CLIENT = "client"
    SERVER = "server"
    PRODUCER = "producer"
    CONSUMER = "consumer"


@dataclass(slots=True, eq=False)
class MutableSpan:
    """Data recorded for one span.

    Timestamps are epoch microseconds. Zero means "not set", matching the
    convention of the clocks that produce them.

    Equality is object identity: handlers that track spans in sets or dicts
    must see two spans with the same data as different spans.
    """

    name: str | None = None
    kind: Kind | None = None
    start_timestamp: int = 0
    finish_timestamp: int = 0
    local_service_name: str | None = None
    remote_service_name: str | None = None
    error: BaseException | None = None
    shared: bool = False
    tags: dict[str, str] = field(default_factory=dict)
    annotations: list[tuple[int, str]] = field(default_factory=list)

    def tag(self, key: str, value: str) -> None:
        """Set a tag, replacing any previous value for the key.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("tag key must not be empty")
        self.tags[key] = value

    def annotate(self, timestamp: int, value: str) -> None:
        """Append a timestamped event.

        Raises:
            ValueError: If value is empty.
        """
        if not value:
            raise ValueError("annotation value must not be empty")
        self.annotations.append((timestamp, value))

    def set_shared(self) -> None:
        self.shared = True

    def is_empty(self) -> bool:
        """True when nothing has ever been recorded on this span."""
        return (
            self.name is None
            and self.kind is None
            and self.start_timestamp == 0
            and self.finish_timestamp == 0
            and self.local_service_name is None
            and self.remote_service_name is None
            and self.error is None
            and not self.shared
            and not self.tags
            and not self.annotations
        )
