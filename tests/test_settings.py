"""Tests for the settings persistence layer."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path

import pytest

from autorun.services.settings import (
    DEFAULT_IGNORE_PATTERNS,
    MIN_CHECKPOINT_INTERVAL,
    Settings,
    SettingsStore,
)

_ENV_NAMES = (
    "AUTORUN_CHECKPOINT_INTERVAL",
    "AUTORUN_DEBUG_LOGGING",
    "AUTORUN_LOG_DIR",
    "AUTORUN_LOG_TO_FILE",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_load_returns_defaults_when_file_missing(tmp_path: Path) -> None:
    settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings == Settings()
    assert settings.checkpoint_interval == 1.0
    assert settings.interpreters[".js"] == ["node"]
    assert ".py" not in settings.interpreters
    assert ".sh" not in settings.interpreters
    assert settings.ignore_patterns == list(DEFAULT_IGNORE_PATTERNS)


def test_save_and_load_roundtrip(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "settings.json"
    original = Settings(
        checkpoint_interval=0.5,
        interpreters={".js": ["node", "--no-warnings"], ".rb": ["ruby"]},
        ignore_patterns=["*.bak"],
        debug_logging=True,
        log_dir=str(tmp_path / "logs"),
        log_to_file=False,
    )

    written = SettingsStore(path).save(original)
    reloaded = SettingsStore(path).load()

    assert written == path
    assert json.loads(path.read_text(encoding="utf-8"))["version"] == 1
    assert reloaded == original


def test_runtime_overrides_merge_interpreters(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "settings.json")

    settings = store.load(overrides={"interpreters": {".rb": "ruby -w"}, "unknown": 1, "log_dir": None})

    assert settings.interpreters[".rb"] == ["ruby", "-w"]
    assert settings.interpreters[".js"] == ["node"]
    assert settings.log_dir is None


def test_env_overrides_take_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    SettingsStore(path).save(Settings(checkpoint_interval=2.0, debug_logging=False))
    monkeypatch.setenv("AUTORUN_CHECKPOINT_INTERVAL", "0.25")
    monkeypatch.setenv("AUTORUN_DEBUG_LOGGING", "yes")
    monkeypatch.setenv("AUTORUN_LOG_TO_FILE", "0")
    monkeypatch.setenv("AUTORUN_LOG_DIR", str(tmp_path / "env-logs"))

    settings = SettingsStore(path).load()

    assert settings.checkpoint_interval == 0.25
    assert settings.debug_logging is True
    assert settings.log_to_file is False
    assert settings.log_dir == str(tmp_path / "env-logs")


def test_invalid_float_env_override_is_ignored(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setenv("AUTORUN_CHECKPOINT_INTERVAL", "soon")

    with caplog.at_level(logging.WARNING, logger="autorun.services.settings"):
        settings = SettingsStore(tmp_path / "settings.json").load()

    assert settings.checkpoint_interval == 1.0
    assert any("AUTORUN_CHECKPOINT_INTERVAL" in record.getMessage() for record in caplog.records)


@pytest.mark.parametrize("payload", ["{not json", "[1, 2, 3]"])
def test_unusable_file_falls_back_to_defaults(tmp_path: Path, payload: str) -> None:
    path = tmp_path / "settings.json"
    path.write_text(payload, encoding="utf-8")

    assert SettingsStore(path).load() == Settings()


def test_unknown_keys_are_dropped(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"version": 1, "theme": "dark", "checkpoint_interval": 3}), encoding="utf-8")

    settings = SettingsStore(path).load()

    assert settings == replace(Settings(), checkpoint_interval=3.0)


def test_normalization_splits_commands_and_clamps_interval(tmp_path: Path) -> None:
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps(
            {
                "checkpoint_interval": 0,
                "interpreters": {".JS": "node --trace-warnings", ".sh": ["bash", "-e"], ".empty": []},
            }
        ),
        encoding="utf-8",
    )

    settings = SettingsStore(path).load()

    assert settings.checkpoint_interval == MIN_CHECKPOINT_INTERVAL
    assert settings.interpreters == {".js": ["node", "--trace-warnings"], ".sh": ["bash", "-e"]}


def test_store_defaults_to_home_directory() -> None:
    assert SettingsStore().path == Path.home() / ".autorun" / "settings.json"


def test_schema_violation_falls_back_to_defaults(
    tmp_path: Path, caplog: pytest.LogCaptureFixture
) -> None:
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"checkpoint_interval": "fast", "interpreters": {".py": 3}}), encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="autorun.services.settings"):
        settings = SettingsStore(path).load()

    assert settings == Settings()
    assert any("is invalid" in record.getMessage() for record in caplog.records)
