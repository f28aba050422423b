"""
Helpers for reading and writing the persisted channel configuration.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from ..errors import ConfigError, LiveChannelError
from ..models import AppConfig

LOGGER = logging.getLogger(__name__)


def load_config(config_path: Path) -> AppConfig:
    if not config_path.exists():
        LOGGER.info("No config found at %s, using default configuration", config_path)
        return AppConfig()

    LOGGER.info("Loading configuration from %s", config_path)
    try:
        with config_path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Failed to read {config_path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} does not contain a JSON object")
    try:
        return AppConfig.from_dict(raw)
    except (KeyError, TypeError, ValueError, LiveChannelError) as exc:
        raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc


def save_config(config: AppConfig, config_path: Path) -> None:
    """Write ``config`` atomically (temp file in the same directory, then replace)."""
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=str(config_path.parent), delete=False
        ) as tmp:
            json.dump(config.to_dict(), tmp, indent=2)
            tmp.flush()
            os.fsync(tmp.fileno())
            tmp_path = Path(tmp.name)
    except OSError as exc:
        raise ConfigError(f"Failed to write config to {config_path}: {exc}") from exc

    try:
        tmp_path.replace(config_path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise ConfigError(f"Failed to replace config file {config_path}: {exc}") from exc
    LOGGER.info("Configuration saved to %s", config_path)
