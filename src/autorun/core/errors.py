"""Exception hierarchy shared by the run pipeline."""

from __future__ import annotations

from pathlib import Path

__all__ = [
    "AutorunError",
    "FileAccessError",
    "MetadataInvariantError",
    "InvalidTransitionError",
]


class AutorunError(Exception):
    """Base class for errors raised by autorun itself."""


class FileAccessError(AutorunError):
    """The watched file could not be read or decoded.

    Treated as transient: the run attempt is abandoned and a later change
    event retries.
    """

    def __init__(self, path: Path | str, reason: BaseException | str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Unable to access {self.path}: {reason}")


class MetadataInvariantError(AutorunError):
    """Writing metadata would have changed the content fingerprint."""

    def __init__(self, file_name: str, expected: str, actual: str) -> None:
        self.file_name = file_name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Metadata write for {file_name} would change its fingerprint "
            f"({expected[:12]}… -> {actual[:12]}…); refusing to write"
        )


class InvalidTransitionError(AutorunError):
    """A run job was asked to move between incompatible states."""
