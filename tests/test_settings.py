"""Tests for persisted settings and data paths."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from lingovox.settings import (
    DEFAULT_CHUNK_INTERVAL_SECONDS,
    DEFAULT_MAX_AUDIO_BYTES,
    AppSettings,
    data_dir,
    default_history_db_path,
    default_settings_path,
)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv("LINGOVOX_HOME", str(tmp_path))
    monkeypatch.delenv("LINGOVOX_SETTINGS_PATH", raising=False)
    return tmp_path


def test_defaults():
    settings = AppSettings()

    assert settings.chunk_interval_seconds == DEFAULT_CHUNK_INTERVAL_SECONDS == 5.0
    assert settings.max_audio_bytes == DEFAULT_MAX_AUDIO_BYTES == 5 * 1024 * 1024
    assert settings.default_language == "auto"
    assert not settings.telemetry_enabled


def test_save_and_load_round_trip(isolated_home: Path):
    settings = AppSettings(api_key="k", chunk_interval_seconds=2.5, user_id="alice")
    settings.save()

    assert default_settings_path() == isolated_home / "settings.json"
    assert AppSettings.load() == settings


def test_load_missing_file_gives_defaults():
    assert AppSettings.load() == AppSettings()


def test_load_corrupt_file_gives_defaults(isolated_home: Path):
    (isolated_home / "settings.json").write_text("{not json", encoding="utf-8")
    assert AppSettings.load() == AppSettings()


def test_from_dict_ignores_unknown_keys_and_coerces():
    settings = AppSettings.from_dict(
        {
            "api_base_url": "https://speech.example/api/",
            "chunk_interval_seconds": "3",
            "max_audio_bytes": "1024",
            "legacy_option": True,
        }
    )

    assert settings.api_base_url == "https://speech.example/api"
    assert settings.chunk_interval_seconds == 3.0
    assert settings.max_audio_bytes == 1024
    assert not hasattr(settings, "legacy_option")


def test_settings_path_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    custom = tmp_path / "elsewhere" / "config.json"
    monkeypatch.setenv("LINGOVOX_SETTINGS_PATH", str(custom))

    AppSettings(user_id="bob").save()

    assert json.loads(custom.read_text())["user_id"] == "bob"


def test_history_path_resolution(isolated_home: Path, tmp_path: Path):
    assert data_dir() == isolated_home
    assert AppSettings().resolved_history_db_path() == default_history_db_path()
    custom = AppSettings(history_db_path=str(tmp_path / "h.db"))
    assert custom.resolved_history_db_path() == tmp_path / "h.db"
