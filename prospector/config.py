"""Configuration management for Prospector."""

from __future__ import annotations

import json
import logging
import os
from enum import StrEnum
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

_CONFIG_VERSION = 1


def _default_config_path() -> Path:
    """Get default config file path following XDG spec."""
    config_home = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return config_home / "prospector" / "config.json"


def _default_db_path() -> str:
    return str(Path.home() / ".prospector" / "prospector.db")


class LogLevel(StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class Config:
    """Application configuration with persistence."""

    def __init__(self, config_path: Path | None = None) -> None:
        self._path = config_path or _default_config_path()
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        """Load config from disk or return defaults."""
        if not self._path.exists():
            return self._defaults()
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable config %s: %s", self._path, exc)
            return self._defaults()
        if not isinstance(data, dict) or data.get("version") != _CONFIG_VERSION:
            return self._defaults()
        return {**self._defaults(), **data}

    def _defaults(self) -> dict[str, Any]:
        """Return default configuration."""
        return {
            "version": _CONFIG_VERSION,
            "db_path": os.getenv("PROSPECTOR_DB_PATH", _default_db_path()),
            "host": os.getenv("PROSPECTOR_HOST", "127.0.0.1"),
            "port": int(os.getenv("PROSPECTOR_PORT", "8765")),
            "log_level": os.getenv("PROSPECTOR_LOG_LEVEL", LogLevel.INFO.value),
        }

    def save(self) -> None:
        """Persist config to disk."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2)

    # -- Getters --

    @property
    def db_path(self) -> str:
        return str(self._data.get("db_path", _default_db_path()))

    @property
    def host(self) -> str:
        return str(self._data.get("host", "127.0.0.1"))

    @property
    def port(self) -> int:
        return int(self._data.get("port", 8765))

    @property
    def log_level(self) -> LogLevel:
        val = str(self._data.get("log_level", LogLevel.INFO.value)).upper()
        try:
            return LogLevel(val)
        except ValueError:
            return LogLevel.INFO

    # -- Setters --

    def set_db_path(self, value: str | Path) -> None:
        self._data["db_path"] = str(value).strip()

    def set_host(self, value: str) -> None:
        self._data["host"] = value.strip()

    def set_port(self, value: int) -> None:
        port = int(value)
        if not 0 < port < 65536:
            raise ValueError(f"Port out of range: {port}")
        self._data["port"] = port

    def set_log_level(self, value: LogLevel) -> None:
        self._data["log_level"] = value.value
