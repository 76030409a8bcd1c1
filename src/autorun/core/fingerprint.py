"""Content fingerprints that ignore embedded metadata."""

from __future__ import annotations

import hashlib

from .metadata import parse

__all__ = ["fingerprint", "strip_metadata", "DIGEST_NAME"]

DIGEST_NAME = "sha512"


def strip_metadata(content: str) -> str:
    """Return ``content`` with every metadata block removed."""

    return parse(content).stripped()


def fingerprint(content: str) -> str:
    """Return the hex digest of ``content`` once its metadata is stripped."""

    canonical = strip_metadata(content)
    return hashlib.new(DIGEST_NAME, canonical.encode("utf-8")).hexdigest()
