"""Service layer helpers (settings, directory watcher)."""

from .settings import Settings, SettingsStore
from .watcher import ChangeEventHandler, DirectoryWatcher

__all__ = ["ChangeEventHandler", "DirectoryWatcher", "Settings", "SettingsStore"]
