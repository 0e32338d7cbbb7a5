"""
reqcheck — hashing utilities

File: src/reqcheck/utils/hashing.py
Last updated: 2026-10-18

Purpose
- Provide deterministic SHA-256 helpers for bytes, text, and files.
- Derive content-addressed cache keys from referenced files and requirement text.

Functional requirements
- Cache keys change iff any referenced file's bytes change or the requirement text changes.
- File order is significant; the same files listed in a different order yield a different key.
- An unreadable or missing file contributes an empty digest instead of raising.

Non-functional requirements
- Standard library only; behavior is cross-platform deterministic.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

PathLike = str | os.PathLike[str]

_FILE_READ_CHUNK_BYTES = 1024 * 1024

__all__ = [
    "compute_cache_key",
    "file_digest_or_empty",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
]


def sha256_bytes(data: bytes) -> str:
    """Return SHA-256 hex digest for raw bytes."""

    return hashlib.sha256(data).hexdigest()


def sha256_text(text: str, *, encoding: str = "utf-8") -> str:
    """Return SHA-256 hex digest for text encoded with ``encoding``."""

    return sha256_bytes(text.encode(encoding))


def sha256_file(path: PathLike, *, chunk_size: int = _FILE_READ_CHUNK_BYTES) -> str:
    """Return SHA-256 hex digest for a file read in chunks."""

    if chunk_size <= 0:
        raise ValueError("chunk_size must be > 0")
    digest = hashlib.sha256()
    with Path(path).open("rb") as file_handle:
        while True:
            chunk = file_handle.read(chunk_size)
            if not chunk:
                break
            digest.update(chunk)
    return digest.hexdigest()


def file_digest_or_empty(path: PathLike) -> str:
    """Return the file digest, or ``""`` when the file cannot be read."""

    try:
        return sha256_file(path)
    except OSError:
        return ""


def compute_cache_key(
    files: Iterable[PathLike],
    requirement_text: str,
    *,
    policy_version: str | None = None,
) -> str:
    """
    Return the content-addressed cache key for ``requirement_text`` against ``files``.

    The key is ``sha256(concat(sha256(file) for file in files) + requirement_text)``.
    When ``policy_version`` is given it is appended after the requirement text so a
    changed verification prompt produces fresh keys.
    """

    if not isinstance(requirement_text, str):
        raise TypeError("requirement_text must be a string")
    combined = "".join(file_digest_or_empty(path) for path in files) + requirement_text
    if policy_version:
        combined += policy_version
    return sha256_text(combined)
