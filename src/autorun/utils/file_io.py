"""File IO helpers for the watched scripts.

Content is hashed byte-for-byte, so reads never normalize newlines and
writes never rewrite them.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import tempfile
from pathlib import Path

__all__ = [
    "read_text",
    "write_text",
    "read_text_async",
    "write_text_async",
]


def read_text(path: Path | str, *, encoding: str = "utf-8") -> str:
    """Read ``path`` with strict decoding and no newline translation."""

    return Path(path).read_bytes().decode(encoding)


def write_text(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    atomic: bool = True,
) -> Path:
    """Write ``content`` verbatim, atomically by default.

    Atomic writes keep the previous file mode so executable scripts stay
    executable after their metadata is rewritten.
    """

    target = Path(path)
    data = content.encode(encoding)
    if not atomic:
        with target.open("wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        return target

    descriptor, tmp_name = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(descriptor, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        if target.exists():
            shutil.copymode(target, tmp_name)
        os.replace(tmp_name, target)
    finally:
        if os.path.exists(tmp_name):  # pragma: no cover - cleanup path
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
    return target


async def read_text_async(path: Path | str, *, encoding: str = "utf-8") -> str:
    """Awaitable :func:`read_text`."""

    return await asyncio.to_thread(read_text, path, encoding=encoding)


async def write_text_async(
    path: Path | str,
    content: str,
    *,
    encoding: str = "utf-8",
    atomic: bool = True,
) -> Path:
    """Awaitable :func:`write_text`."""

    return await asyncio.to_thread(write_text, path, content, encoding=encoding, atomic=atomic)
