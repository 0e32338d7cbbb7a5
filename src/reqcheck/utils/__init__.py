"""Utility exports for filesystem and hashing helpers."""

from reqcheck.utils.fs import atomic_write, read_text_preserving_newlines, temp_directory
from reqcheck.utils.hashing import (
    compute_cache_key,
    file_digest_or_empty,
    sha256_bytes,
    sha256_file,
    sha256_text,
)

__all__ = [
    "atomic_write",
    "compute_cache_key",
    "file_digest_or_empty",
    "read_text_preserving_newlines",
    "sha256_bytes",
    "sha256_file",
    "sha256_text",
    "temp_directory",
]
