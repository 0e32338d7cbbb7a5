"""
reqcheck — filesystem utilities

File: src/reqcheck/utils/fs.py
Last updated: 2026-10-18

Purpose
- Provide safe, minimal filesystem helpers for atomic writes and scratch directories.

Functional requirements
- Atomic writes use temp files in the destination directory and replace in a single step.
- Scratch directories are removed on every exit path, including exceptions.

Non-functional requirements
- Standard library only and cross-platform behavior where feasible.
"""

from __future__ import annotations

import contextlib
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

PathLike = str | os.PathLike[str]

__all__ = [
    "atomic_write",
    "read_text_preserving_newlines",
    "temp_directory",
]


def atomic_write(path: PathLike, data: bytes | str, *, encoding: str = "utf-8") -> None:
    """
    Atomically write ``data`` to ``path``.

    The write strategy is:
    1. create temp file in the same directory,
    2. write + flush + fsync file data,
    3. replace target via ``os.replace``.

    Text is written with ``newline=""`` so line endings in ``data`` are kept verbatim.
    """

    target = Path(path)
    target_parent = target.parent.resolve(strict=True)
    if not target_parent.is_dir():
        raise NotADirectoryError(f"{target_parent!s} is not a directory")

    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.",
        suffix=".tmp",
        dir=str(target_parent),
    )
    temp_path = Path(temp_name)

    try:
        if isinstance(data, bytes):
            with os.fdopen(fd, "wb") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())
        else:
            with os.fdopen(fd, "w", encoding=encoding, newline="") as file_handle:
                file_handle.write(data)
                file_handle.flush()
                os.fsync(file_handle.fileno())

        with contextlib.suppress(OSError):
            shutil.copymode(target, temp_path)
        os.replace(temp_path, target)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


def read_text_preserving_newlines(path: PathLike, *, encoding: str = "utf-8") -> str:
    """Read text without newline translation so ``\\r\\n`` survives a rewrite."""

    with Path(path).open("r", encoding=encoding, newline="") as handle:
        return handle.read()


@contextmanager
def temp_directory(prefix: str = "reqcheck-") -> Iterator[Path]:
    """Yield a temporary directory path and clean it up on exit."""

    with tempfile.TemporaryDirectory(prefix=prefix, ignore_cleanup_errors=True) as tmp:
        yield Path(tmp)
