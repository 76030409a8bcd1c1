"""Embedded ``@autorun-`` metadata blocks: parsing and hash-stable serialization."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping, Sequence

__all__ = [
    "BLOCK_PREFIX",
    "BLOCK_SUFFIX",
    "LAST_RUN_HASH_KEY",
    "OUTPUT_KEY",
    "STOP_KEY",
    "APPEND_THRESHOLD",
    "MetadataRange",
    "AnnotatedFile",
    "parse",
    "serialize",
    "format_block",
    "escape_value",
    "unescape_value",
]

BLOCK_PREFIX = "\n/** @autorun-"
BLOCK_SUFFIX = " */\n"

LAST_RUN_HASH_KEY = "lastRunHash"
OUTPUT_KEY = "output"
STOP_KEY = "stop"

# New values longer than this go to the end of the file instead of the start.
APPEND_THRESHOLD = 60

_ESCAPE_PATTERN = re.compile(r"\*(\\*)/")
_UNESCAPE_PATTERN = re.compile(r"\*\\(\\*)/")


@dataclass(slots=True, frozen=True)
class MetadataRange:
    """One ``key value`` block located in the original text.

    ``start``/``end`` cover the whole block, markers included. ``value`` is
    the decoded value.
    """

    key: str
    value: str
    start: int
    end: int


@dataclass(slots=True)
class AnnotatedFile:
    """Parsed view of a text blob carrying metadata blocks.

    ``ranges`` always point into ``original``; mutating ``values`` only has an
    effect once :meth:`serialize` is called.
    """

    original: str
    ranges: tuple[MetadataRange, ...] = ()
    values: dict[str, str] = field(default_factory=dict)

    def serialize(self, values: Mapping[str, str] | None = None) -> str:
        """Render ``values`` (defaults to :attr:`values`) against the original text."""

        return serialize(self.values if values is None else values, self.ranges, self.original)

    def stripped(self) -> str:
        """Return the original text with every metadata block removed."""

        return serialize({}, self.ranges, self.original)

    def copy_values(self) -> dict[str, str]:
        return dict(self.values)


def escape_value(value: str) -> str:
    """Escape ``value`` so it can never contain the closing marker.

    Every ``*`` + backslashes + ``/`` run gains one backslash, which turns
    ``*/`` into ``*\\/`` and keeps the mapping reversible.
    """

    return _ESCAPE_PATTERN.sub(lambda match: "*\\" + match.group(1) + "/", value)


def unescape_value(value: str) -> str:
    """Inverse of :func:`escape_value`."""

    return _UNESCAPE_PATTERN.sub(lambda match: "*" + match.group(1) + "/", value)


def format_block(key: str, value: str) -> str:
    """Return the full block text for ``key``/``value``."""

    if not key or any(char.isspace() for char in key):
        raise ValueError(f"Metadata key must be a non-empty word without whitespace: {key!r}")
    return f"{BLOCK_PREFIX}{key} {escape_value(str(value))}{BLOCK_SUFFIX}"


def parse(content: str) -> AnnotatedFile:
    """Scan ``content`` left to right and collect every well-formed block."""

    ranges: list[MetadataRange] = []
    values: dict[str, str] = {}
    index = 0
    while True:
        start = content.find(BLOCK_PREFIX, index)
        if start < 0:
            break
        suffix_at = content.find(BLOCK_SUFFIX, start)
        if suffix_at < 0:
            break
        key_start = start + len(BLOCK_PREFIX)
        key_end = content.find(" ", key_start)
        key = content[key_start:key_end]
        value = unescape_value(content[key_end + 1 : suffix_at])
        end = suffix_at + len(BLOCK_SUFFIX)

        values[key] = value
        ranges.append(MetadataRange(key=key, value=value, start=start, end=end))
        index = end

    return AnnotatedFile(original=content, ranges=tuple(ranges), values=values)


def serialize(
    values: Mapping[str, str],
    ranges: Sequence[MetadataRange],
    original: str,
) -> str:
    """Write ``values`` back into ``original`` while touching as few bytes as possible."""

    content = original
    found: set[str] = set()

    # Reverse order keeps the offsets of earlier ranges valid.
    for metadata_range in reversed(ranges):
        key = metadata_range.key
        if key in values:
            current = values[key]
            if current != metadata_range.value:
                content = (
                    content[: metadata_range.start]
                    + format_block(key, current)
                    + content[metadata_range.end :]
                )
            found.add(key)
        else:
            content = content[: metadata_range.start] + content[metadata_range.end :]

    for key, value in values.items():
        if key in found:
            continue
        block = format_block(key, value)
        if len(str(value)) > APPEND_THRESHOLD or key == OUTPUT_KEY:
            content = content + block
        else:
            content = block + content

    return content
