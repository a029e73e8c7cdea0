"""Relay application configuration.

Loads settings from a single YAML file:
  * relay.settings.yaml: non-secret configuration

The path can be overridden with the ``RELAY_SETTINGS`` environment variable
or by passing ``settings_path`` to :func:`load_config`. A missing file is not
an error; every setting has a default.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

SETTINGS_FILE = Path("relay.settings.yaml")
SETTINGS_ENV_VAR = "RELAY_SETTINGS"

_LOG_LEVELS = {"critical", "error", "warning", "info", "debug"}


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning("Config file not found: %s", path)
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


# ---------------------------------------------------------------------------
# Settings models
# ---------------------------------------------------------------------------


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000


class LoggingSettings(BaseModel):
    level: str = "info"

    @field_validator("level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value.lower() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {value}")
        return value.lower()


class ChatSettings(BaseModel):
    """Conversation id format and message limits."""
    room_prefix:        str = "room_"
    room_separator:     str = "_"
    max_message_length: int = Field(default=10000, ge=1)

    @field_validator("room_separator")
    @classmethod
    def _non_empty_separator(cls, value: str) -> str:
        if not value:
            raise ValueError("room_separator must not be empty")
        return value


class AppConfig(BaseModel):
    server:  ServerSettings  = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    chat:    ChatSettings    = Field(default_factory=ChatSettings)


# ---------------------------------------------------------------------------
# Public loader
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def load_config(settings_path: Optional[Path] = None) -> AppConfig:
    """Load *relay.settings.yaml* into an :class:`AppConfig`."""
    if settings_path is None:
        settings_path = Path(os.environ.get(SETTINGS_ENV_VAR, SETTINGS_FILE))
    data = _load_yaml(Path(settings_path))

    config = AppConfig(**data)
    logger.info(
        "Settings loaded (server=%s:%s, log_level=%s, room_prefix=%r)",
        config.server.host,
        config.server.port,
        config.logging.level,
        config.chat.room_prefix,
    )
    return config


def get_config() -> AppConfig:
    """Return the process-wide configuration, loading it on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reset_config() -> None:
    """Forget the cached configuration (used by tests)."""
    global _config
    _config = None
