"""Command line entry point for the autorun directory watcher."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

from .runtime import ProcessRunner, ProcessRunnerConfig, RunCoordinator
from .services.settings import Settings, SettingsStore
from .services.watcher import DirectoryWatcher
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)


def configure_logging(
    debug: bool = False,
    *,
    settings: Settings | None = None,
    force: bool = False,
) -> None:
    """Configure structured logging for the watcher."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(
        level,
        log_dir=settings.log_dir if settings else None,
        log_to_file=settings.log_to_file if settings else True,
        force=force,
    )
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except OSError as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def build_watcher(directory: Path, settings: Settings) -> tuple[DirectoryWatcher, RunCoordinator]:
    """Wire the process runner, coordinator and watcher for ``directory``."""

    runner = ProcessRunner(
        ProcessRunnerConfig(
            checkpoint_interval=settings.checkpoint_interval,
            interpreters=settings.interpreters,
        )
    )
    coordinator = RunCoordinator(directory, runner)
    watcher = DirectoryWatcher(directory, coordinator, ignore_patterns=settings.ignore_patterns)
    return watcher, coordinator


async def serve(directory: Path, settings: Settings) -> None:
    """Watch ``directory`` until cancelled."""

    watcher, coordinator = build_watcher(directory, settings)
    try:
        await watcher.run_forever()
    finally:
        await coordinator.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `autorun` console script."""

    parser = _build_parser()
    args = parser.parse_args(argv)
    directory = Path(args.directory).expanduser()
    if not directory.is_dir():
        parser.error(f"{directory} is not a directory")

    debug = _env_flag("AUTORUN_DEBUG", default=False)
    settings_path = os.environ.get("AUTORUN_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings = load_settings(resolved_path)
    configure_logging(debug or settings.debug_logging, settings=settings)

    try:
        asyncio.run(serve(directory.resolve(), settings))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
    finally:
        logging_utils.shutdown_logging()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autorun",
        description=(
            "Watch a directory and re-run every script whose content changed "
            "since its last recorded run."
        ),
    )
    parser.add_argument("directory", help="Directory of scripts to watch.")
    return parser


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES
