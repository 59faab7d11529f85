# src/spankeeper/core/config.py
"""
Configuration schema and loading for spankeeper.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator


class SpanHandlerSettings(BaseModel):
    """A span handler to install, by registered name.

    Example YAML:
        handlers:
          - name: log
            options:
              level: debug
    """

    model_config = {"frozen": True}

    name: str = Field(description="Registered handler name (e.g. 'log', 'memory')")
    options: dict[str, Any] = Field(default_factory=dict, description="Handler-specific options")

    @field_validator("name")
    @classmethod
    def validate_name_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("handler name cannot be empty")
        return v.strip()


class RecorderSettings(BaseModel):
    """Top-level spankeeper configuration.

    Example YAML:
        track_orphans: true
        handlers:
          - name: log
        orphan_handlers:
          - name: log
            options:
              level: warning
    """

    model_config = {"frozen": True}

    track_orphans: bool = Field(
        default=False,
        description="Record allocation sites and log spans reclaimed without being finished",
    )
    noop: bool = Field(
        default=False,
        description="Start with recording disabled (orphans are dropped unreported)",
    )
    handlers: list[SpanHandlerSettings] = Field(
        default_factory=list,
        description="Handlers for create, abandon and finish events, in dispatch order",
    )
    orphan_handlers: list[SpanHandlerSettings] | None = Field(
        default=None,
        description="Handlers for orphaned spans. Omit to reuse 'handlers'; use [] to drop orphans.",
    )


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def replacer(match: re.Match[str]) -> str:
        env_value = os.environ.get(match.group(1))
        if env_value is not None:
            return env_value
        default = match.group(2)
        if default is not None:
            return default
        # No env var and no default - keep original so validation reports it
        return match.group(0)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _ENV_VAR_PATTERN.sub(replacer, value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def load_settings(config_path: Path) -> RecorderSettings:
    """Load settings from YAML file with environment variable overrides.

    Precedence:
    1. Environment variables (SPANKEEPER_*) - highest priority
    2. Config file
    3. Defaults from Pydantic schema - lowest priority

    Environment variable format: SPANKEEPER_TRACK_ORPHANS=true.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Validated RecorderSettings instance

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="SPANKEEPER",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; convert to lowercase for Pydantic
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k.lower(): v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}

    return RecorderSettings(**_expand_env_vars(raw_config))
