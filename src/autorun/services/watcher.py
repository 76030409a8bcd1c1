"""Directory watcher feeding file names into the run coordinator."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
from pathlib import Path
from typing import Any, Callable, Protocol, Sequence

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .settings import DEFAULT_IGNORE_PATTERNS

__all__ = ["DirectoryWatcher", "ChangeEventHandler", "Triggerable"]

LOGGER = logging.getLogger(__name__)
_HANDLED_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_DELETED, EVENT_TYPE_MOVED})


class Triggerable(Protocol):
    """The part of :class:`~autorun.runtime.RunCoordinator` the watcher needs."""

    def trigger(self, file_name: str) -> Any:
        ...


class ChangeEventHandler(FileSystemEventHandler):
    """Forwards watchdog events to the event loop as plain file names.

    Runs on the observer thread; the only thing it does there is hand the
    name over with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        directory: Path,
        loop: asyncio.AbstractEventLoop,
        callback: Callable[[str], Any],
    ) -> None:
        super().__init__()
        self._directory = directory
        self._loop = loop
        self._callback = callback

    def on_any_event(self, event: Any) -> None:
        if event.is_directory or event.event_type not in _HANDLED_EVENTS:
            return
        paths = [event.src_path]
        dest_path = getattr(event, "dest_path", None)
        if dest_path:
            paths.append(dest_path)
        for raw_path in paths:
            name = self._name_in_directory(raw_path)
            if name is None:
                continue
            if self._loop.is_closed():
                return
            try:
                self._loop.call_soon_threadsafe(self._callback, name)
            except RuntimeError:  # pragma: no cover - loop closed between checks
                LOGGER.debug("Event loop closed; dropping event for %s", name)

    def _name_in_directory(self, raw_path: Any) -> str | None:
        path = Path(os.fsdecode(raw_path))
        if path.parent != self._directory and path.parent.resolve() != self._directory:
            return None
        return path.name or None


class DirectoryWatcher:
    """Watches one directory and triggers runs for changed or existing files."""

    def __init__(
        self,
        directory: Path | str,
        coordinator: Triggerable,
        *,
        ignore_patterns: Sequence[str] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._directory = Path(directory).expanduser().resolve()
        self._coordinator = coordinator
        self._ignore_patterns = tuple(
            DEFAULT_IGNORE_PATTERNS if ignore_patterns is None else ignore_patterns
        )
        self._loop = loop
        self._observer: Any | None = None

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def is_ignored(self, file_name: str) -> bool:
        return any(fnmatch.fnmatch(file_name, pattern) for pattern in self._ignore_patterns)

    def handle_change(self, file_name: str) -> None:
        """Trigger a run for ``file_name`` unless it matches an ignore pattern."""

        if self.is_ignored(file_name):
            return
        LOGGER.debug("Change detected for %s", file_name)
        self._coordinator.trigger(file_name)

    def scan(self) -> list[str]:
        """Trigger every entry currently in the directory; returns the names triggered."""

        triggered: list[str] = []
        for name in sorted(os.listdir(self._directory)):
            if self.is_ignored(name):
                continue
            self._coordinator.trigger(name)
            triggered.append(name)
        LOGGER.debug("Initial scan of %s queued %d file(s)", self._directory, len(triggered))
        return triggered

    def start(self) -> None:
        if self._observer is not None:
            return
        loop = self._loop or asyncio.get_running_loop()
        handler = ChangeEventHandler(self._directory, loop, self.handle_change)
        observer = Observer()
        observer.schedule(handler, str(self._directory), recursive=False)
        observer.start()
        self._observer = observer
        LOGGER.info("Watching %s", self._directory)

    def stop(self, timeout: float = 5.0) -> None:
        observer = self._observer
        if observer is None:
            return
        self._observer = None
        observer.stop()
        observer.join(timeout)
        if observer.is_alive():  # pragma: no cover - depends on platform backend
            LOGGER.warning("Observer thread did not exit within %.1fs", timeout)

    async def run_forever(self) -> None:
        """Start watching, scan once, then wait until cancelled."""

        self.start()
        try:
            self.scan()
            await asyncio.Event().wait()
        finally:
            self.stop()
