# src/spankeeper/contracts/config.py
"""Runtime configuration dataclasses.

These dataclasses are the immutable, already-validated form of the user's
RecorderSettings. Settings models live in spankeeper.core.config (pydantic);
runtime code only ever sees the dataclasses below.

Design Principles:
1. Frozen (immutable) - runtime config should never change after startup
2. Slots - memory efficient, prevents attribute typos
3. Factory methods - from_settings(), default()
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from spankeeper.core.config import RecorderSettings


@dataclass(frozen=True, slots=True)
class HandlerConfig:
    """Configuration for a single span handler.

    Example YAML that produces HandlerConfig instances:
        handlers:
          - name: log
            options:
              level: info
          - name: memory
    """

    name: str
    options: dict[str, Any]

    def __post_init__(self) -> None:
        """Validate handler configuration."""
        if not self.name:
            raise ValueError("handler name cannot be empty")


@dataclass(frozen=True, slots=True)
class RuntimeRecorderConfig:
    """Runtime configuration for the pending span registry.

    Field Origins (all from RecorderSettings):
        - track_orphans: RecorderSettings.track_orphans (direct)
        - noop: RecorderSettings.noop (direct, initial kill switch state)
        - handler_configs: RecorderSettings.handlers (tuple of HandlerConfig)
        - orphan_handler_configs: RecorderSettings.orphan_handlers
          (None means orphans go to the main handler chain)
    """

    track_orphans: bool
    noop: bool
    handler_configs: tuple[HandlerConfig, ...]
    orphan_handler_configs: tuple[HandlerConfig, ...] | None

    @classmethod
    def default(cls) -> "RuntimeRecorderConfig":
        """Factory for default configuration.

        No handlers, orphan tracking off, recording on.
        """
        return cls(
            track_orphans=False,
            noop=False,
            handler_configs=(),
            orphan_handler_configs=None,
        )

    @classmethod
    def from_settings(cls, settings: "RecorderSettings") -> "RuntimeRecorderConfig":
        """Factory from RecorderSettings config model.

        Args:
            settings: Validated pydantic settings model

        Returns:
            RuntimeRecorderConfig with mapped values
        """
        handler_configs = tuple(HandlerConfig(name=h.name, options=dict(h.options)) for h in settings.handlers)
        orphan_handler_configs = None
        if settings.orphan_handlers is not None:
            orphan_handler_configs = tuple(HandlerConfig(name=h.name, options=dict(h.options)) for h in settings.orphan_handlers)

        return cls(
            track_orphans=settings.track_orphans,
            noop=settings.noop,
            handler_configs=handler_configs,
            orphan_handler_configs=orphan_handler_configs,
        )
