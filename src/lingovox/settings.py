"""Persistent client settings and data-directory helpers."""

from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

SETTINGS_ENV_VAR = "LINGOVOX_SETTINGS_PATH"
HOME_ENV_VAR = "LINGOVOX_HOME"

DEFAULT_CHUNK_INTERVAL_SECONDS = 5.0
DEFAULT_MAX_AUDIO_BYTES = 5 * 1024 * 1024


@dataclass
class AppSettings:
    """User-adjustable settings persisted to disk."""

    api_base_url: str = "http://localhost:5000/api"
    api_key: str = ""
    request_timeout_seconds: float = 30.0
    # Streaming transcription
    chunk_interval_seconds: float = DEFAULT_CHUNK_INTERVAL_SECONDS
    default_language: str = "auto"
    # Local history
    max_audio_bytes: int = DEFAULT_MAX_AUDIO_BYTES
    history_db_path: str = ""
    # Identity used by the command-line client
    user_id: str = ""
    user_email: str = ""
    user_display_name: str = ""
    telemetry_enabled: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the settings to a dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "AppSettings":
        """Create a settings instance from a dictionary payload.

        Unknown keys are ignored so older or newer settings files still load.
        """
        data = dict(payload)
        if "chunk_interval_seconds" in data:
            data["chunk_interval_seconds"] = float(data["chunk_interval_seconds"])
        if "request_timeout_seconds" in data:
            data["request_timeout_seconds"] = float(data["request_timeout_seconds"])
        if "max_audio_bytes" in data:
            data["max_audio_bytes"] = int(data["max_audio_bytes"])
        if isinstance(data.get("api_base_url"), str):
            data["api_base_url"] = data["api_base_url"].rstrip("/")
        return cls(
            **{
                field: data.get(field, getattr(cls, field))
                for field in cls.__annotations__
            }
        )

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppSettings":
        """Load settings from disk, falling back to defaults."""
        settings_path = path or default_settings_path()
        if settings_path.is_file():
            try:
                payload = json.loads(settings_path.read_text(encoding="utf-8"))
            except (json.JSONDecodeError, OSError):
                payload = {}
            return cls.from_dict(payload)
        return cls()

    def save(self, path: Optional[Path] = None) -> None:
        """Persist the settings to disk."""
        settings_path = path or default_settings_path()
        settings_path.parent.mkdir(parents=True, exist_ok=True)
        serialized = json.dumps(self.to_dict(), indent=2, sort_keys=True)
        settings_path.write_text(serialized, encoding="utf-8")

    def resolved_history_db_path(self) -> Path:
        """Return the configured history database path or the default one."""
        if self.history_db_path:
            return Path(self.history_db_path).expanduser()
        return default_history_db_path()


def data_dir() -> Path:
    """Resolve the per-user directory holding the database, logs and settings."""
    override = os.getenv(HOME_ENV_VAR)
    if override:
        return Path(override)
    xdg = os.getenv("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "lingovox"
    local_app_data = os.getenv("LOCALAPPDATA")
    if local_app_data:
        return Path(local_app_data) / "Lingovox"
    return Path.home() / ".local" / "share" / "lingovox"


def default_settings_path() -> Path:
    override = os.getenv(SETTINGS_ENV_VAR)
    if override:
        return Path(override)
    return data_dir() / "settings.json"


def default_history_db_path() -> Path:
    return data_dir() / "history.db"


def default_log_path() -> Path:
    return data_dir() / "lingovox.log"


def default_metrics_log_path() -> Path:
    return data_dir() / "metrics.log"
