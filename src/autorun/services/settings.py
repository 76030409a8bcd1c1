"""Settings dataclass and persistence helpers."""

from __future__ import annotations

import json
import logging
import os
import shlex
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping

from jsonschema import Draft7Validator, ValidationError

from ..utils import file_io

__all__ = [
    "Settings",
    "SettingsStore",
    "DEFAULT_INTERPRETERS",
    "DEFAULT_IGNORE_PATTERNS",
    "MIN_CHECKPOINT_INTERVAL",
    "SETTINGS_SCHEMA",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".autorun"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_SETTINGS_VERSION = 1
_ENV_OVERRIDES: Mapping[str, str] = {
    "AUTORUN_LOG_DIR": "log_dir",
}
_BOOL_ENV_OVERRIDES: Mapping[str, str] = {
    "AUTORUN_DEBUG_LOGGING": "debug_logging",
    "AUTORUN_LOG_TO_FILE": "log_to_file",
}
_FLOAT_ENV_OVERRIDES: Mapping[str, str] = {
    "AUTORUN_CHECKPOINT_INTERVAL": "checkpoint_interval",
}
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
MIN_CHECKPOINT_INTERVAL = 0.01

# Only languages whose block comments can hold the metadata blocks.
DEFAULT_INTERPRETERS: Mapping[str, tuple[str, ...]] = {
    ".js": ("node",),
    ".mjs": ("node",),
    ".cjs": ("node",),
}
DEFAULT_IGNORE_PATTERNS: tuple[str, ...] = (".*", "*~", "*.swp", "*.tmp")


_COMMAND_SCHEMA: Dict[str, Any] = {
    "anyOf": [
        {"type": "string", "minLength": 1},
        {"type": "array", "items": {"type": "string"}},
    ]
}

SETTINGS_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "version": {"type": "integer"},
        "checkpoint_interval": {"type": "number"},
        "interpreters": {"type": "object", "additionalProperties": _COMMAND_SCHEMA},
        "ignore_patterns": {"type": "array", "items": {"type": "string"}},
        "debug_logging": {"type": "boolean"},
        "log_dir": {"type": ["string", "null"]},
        "log_to_file": {"type": "boolean"},
    },
    "additionalProperties": True,
}

_SETTINGS_VALIDATOR = Draft7Validator(SETTINGS_SCHEMA)


def _default_interpreters() -> dict[str, list[str]]:
    return {suffix: list(command) for suffix, command in DEFAULT_INTERPRETERS.items()}


@dataclass(slots=True)
class Settings:
    """User-configurable settings for the watcher."""

    checkpoint_interval: float = 1.0
    interpreters: dict[str, list[str]] = field(default_factory=_default_interpreters)
    ignore_patterns: list[str] = field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))
    debug_logging: bool = False
    log_dir: str | None = None
    log_to_file: bool = True


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or _DEFAULT_SETTINGS_PATH

    @property
    def path(self) -> Path:
        """Return the resolved path backing this store."""

        return self._path

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, applying runtime/environment overrides when present."""

        payload = self._read_payload()
        settings = Settings()
        if payload:
            data = _filter_fields(payload)
            try:
                settings = Settings(**data)
            except TypeError as exc:
                LOGGER.warning("Settings payload contained unexpected data: %s", exc)
                settings = Settings()

        if overrides:
            settings = self._apply_overrides(settings, overrides, source="runtime")

        settings = self._apply_env_overrides(settings)
        return _normalize(settings)

    def save(self, settings: Settings) -> Path:
        """Persist settings to disk with atomic file writes."""

        payload = asdict(settings)
        payload["version"] = _SETTINGS_VERSION
        body = json.dumps(payload, indent=2, sort_keys=True)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        file_io.write_text(self._path, body)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8")
            payload = json.loads(text)
        except FileNotFoundError:
            return {}
        except json.JSONDecodeError as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Settings file %s does not contain an object", self._path)
            return {}
        try:
            _SETTINGS_VALIDATOR.validate(payload)
        except ValidationError as error:
            LOGGER.warning(
                "Settings file %s is invalid (%s); using defaults",
                self._path,
                _format_validation_error(error),
            )
            return {}
        return payload

    def _apply_overrides(
        self,
        settings: Settings,
        overrides: Mapping[str, Any],
        *,
        source: str = "runtime",
    ) -> Settings:
        allowed = {item.name for item in fields(Settings)}
        filtered: Dict[str, Any] = {}
        for key, value in overrides.items():
            if key not in allowed or value is None:
                continue
            filtered[key] = value
        interpreters = filtered.get("interpreters")
        if isinstance(interpreters, Mapping):
            merged = dict(settings.interpreters)
            merged.update(interpreters)
            filtered["interpreters"] = merged
        if filtered:
            LOGGER.debug("Applying %s settings overrides: %s", source, sorted(filtered))
            settings = replace(settings, **filtered)
        return settings

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, field_name in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value
        for env_name, field_name in _BOOL_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is not None:
                overrides[field_name] = value.strip().lower() in _TRUE_VALUES
        for env_name, field_name in _FLOAT_ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[field_name] = float(value)
            except ValueError:
                LOGGER.warning(
                    "Environment override %s=%s is not a valid float", env_name, value
                )
        if overrides:
            settings = self._apply_overrides(settings, overrides, source="environment")
        return settings


def _filter_fields(payload: Mapping[str, Any]) -> Dict[str, Any]:
    allowed = {item.name for item in fields(Settings)}
    return {key: value for key, value in payload.items() if key in allowed}


def _split_command(command: Any) -> list[str]:
    if isinstance(command, str):
        return shlex.split(command)
    return [str(part) for part in command]


def _normalize(settings: Settings) -> Settings:
    try:
        interval = float(settings.checkpoint_interval)
    except (TypeError, ValueError):
        LOGGER.warning("Invalid checkpoint interval %r; using default", settings.checkpoint_interval)
        interval = Settings().checkpoint_interval
    interval = max(MIN_CHECKPOINT_INTERVAL, interval)
    interpreters = {
        str(suffix).lower(): _split_command(command)
        for suffix, command in (settings.interpreters or {}).items()
        if command
    }
    patterns = [str(pattern) for pattern in settings.ignore_patterns or []]
    return replace(
        settings,
        checkpoint_interval=interval,
        interpreters=interpreters,
        ignore_patterns=patterns,
    )


def _format_validation_error(error: ValidationError) -> str:
    path = ".".join(str(part) for part in error.path)
    if path:
        return f"{path}: {error.message}"
    return error.message
