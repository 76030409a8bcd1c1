"""Core domain: the metadata store, fingerprints and shared errors."""

from .errors import AutorunError, FileAccessError, InvalidTransitionError, MetadataInvariantError
from .fingerprint import fingerprint, strip_metadata
from .metadata import (
    LAST_RUN_HASH_KEY,
    OUTPUT_KEY,
    STOP_KEY,
    AnnotatedFile,
    MetadataRange,
    format_block,
    parse,
    serialize,
)

__all__ = [
    "AnnotatedFile",
    "AutorunError",
    "FileAccessError",
    "InvalidTransitionError",
    "LAST_RUN_HASH_KEY",
    "MetadataInvariantError",
    "MetadataRange",
    "OUTPUT_KEY",
    "STOP_KEY",
    "fingerprint",
    "format_block",
    "parse",
    "serialize",
    "strip_metadata",
]
