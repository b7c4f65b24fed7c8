"""Application configuration management."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from standards import zones
from standards.models import AppConfig

log = logging.getLogger(__name__)

_CONFIG_DIR = Path.home() / ".config" / "minimum-standards"
_CONFIG_FILE = _CONFIG_DIR / "config.json"

DEFAULT_TIMEZONE = "UTC"


def load_config() -> AppConfig:
    """Load config from disk, returning defaults if none exists."""
    if _CONFIG_FILE.exists():
        try:
            data = json.loads(_CONFIG_FILE.read_text())
            return AppConfig(**data)
        except (json.JSONDecodeError, TypeError, ValidationError) as exc:
            log.warning("Ignoring unreadable config %s: %s", _CONFIG_FILE, exc)
    return AppConfig()


def save_config(config: AppConfig) -> Path:
    """Write config to disk. Returns the config file path."""
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _CONFIG_FILE.write_text(config.model_dump_json(indent=2))
    return _CONFIG_FILE


def resolve_timezone(override: Optional[str] = None) -> str:
    """Pick the timezone to run with and validate it once.

    Order: explicit override, saved config, ``$TZ``, then UTC.
    Raises :class:`~standards.zones.InvalidTimeInput` for an unknown zone.
    """
    name = override or load_config().timezone or os.environ.get("TZ") or DEFAULT_TIMEZONE
    zones.get_zone(name)
    return name


def set_timezone(name: str) -> AppConfig:
    """Validate and save a timezone."""
    zones.get_zone(name)
    config = load_config()
    config.timezone = name
    save_config(config)
    return config


def reset_timezone() -> AppConfig:
    """Go back to the environment's timezone."""
    config = load_config()
    config.timezone = None
    save_config(config)
    return config


def set_data_path(path: str) -> AppConfig:
    """Remember a default dashboard input file."""
    config = load_config()
    config.data_path = str(Path(path).expanduser().resolve())
    save_config(config)
    return config
