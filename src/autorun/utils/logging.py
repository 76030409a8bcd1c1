"""Logging setup for the autorun watcher.

The watcher owns the handlers it installs on the root logger and removes only
those when reconfigured, so handlers added by an embedding host stay put.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
import sys
from pathlib import Path

__all__ = ["setup_logging", "shutdown_logging", "get_log_path", "LOG_FILE_NAME"]

LOG_FILE_NAME = "autorun.log"
_DEFAULT_LOG_DIR = Path.home() / ".autorun" / "logs"
_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
# Held at WARNING or above whatever the root level is.
_NOISY_LOGGERS: tuple[str, ...] = ("asyncio", "watchdog")

_installed: list[logging.Handler] = []
_log_path: Path | None = None


def setup_logging(
    level: int = logging.INFO,
    *,
    log_dir: Path | str | None = None,
    console: bool = True,
    log_to_file: bool = True,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
    force: bool = False,
) -> Path | None:
    """Install console and rotating file handlers on the root logger.

    Calling again is a no-op unless ``force`` is set, in which case the
    previously installed handlers are closed first. Returns the log file, or
    ``None`` when file logging is disabled.
    """

    global _log_path
    if _installed and not force:
        return _log_path
    shutdown_logging()

    formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT)
    log_path: Path | None = None
    if log_to_file:
        log_path = _resolve_log_dir(log_dir) / LOG_FILE_NAME
        _install(_file_handler(log_path, max_bytes, backup_count), level, formatter)
    if console:
        _install(logging.StreamHandler(sys.stderr), level, formatter)
    if not _installed:
        _install(logging.NullHandler(), level, formatter)

    root = logging.getLogger()
    root.setLevel(level)
    logging.captureWarnings(True)
    quiet_level = max(level, logging.WARNING)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(quiet_level)

    _log_path = log_path
    return log_path


def shutdown_logging() -> None:
    """Detach and close every handler installed by :func:`setup_logging`."""

    global _log_path
    root = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()
    _log_path = None


def get_log_path() -> Path | None:
    """Return the active log file, if file logging is configured."""

    return _log_path


def _install(handler: logging.Handler, level: int, formatter: logging.Formatter) -> None:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logging.getLogger().addHandler(handler)
    _installed.append(handler)


def _file_handler(log_path: Path, max_bytes: int, backup_count: int) -> logging.Handler:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("AUTORUN_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()
