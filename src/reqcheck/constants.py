"""Stable constants shared across reqcheck components."""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Final

# Sandbox defaults.
DEFAULT_SANDBOX_TIMEOUT_SECONDS: Final[float] = 5.0
SANDBOX_TEMP_PREFIX: Final[str] = "reqcheck-"
SANDBOX_SCRIPT_STEM: Final[str] = "test"

# Cache defaults. The cache is per-user, not per-repository.
CACHE_DIR: Final[Path] = Path("~/.reqcheck")
CACHE_DB_FILENAME: Final[str] = "cache.db"

# Run log location (relative to the working directory unless overridden by config).
LOG_DIR: Final[PurePosixPath] = PurePosixPath("reqcheck/logs")
RUN_LOG_FILENAME: Final[str] = "run.log"

# Spec document conventions.
MARKDOWN_SUFFIXES: Final[tuple[str, ...]] = (".md", ".markdown")
STRUCTURED_SUFFIXES: Final[tuple[str, ...]] = (".yaml", ".yml")
INLINE_TEST_FENCE_LABELS: Final[tuple[str, ...]] = ("test", "reqcheck")
REQUIREMENT_ID_PREFIX: Final[str] = "req"

__all__ = [
    "CACHE_DB_FILENAME",
    "CACHE_DIR",
    "DEFAULT_SANDBOX_TIMEOUT_SECONDS",
    "INLINE_TEST_FENCE_LABELS",
    "LOG_DIR",
    "MARKDOWN_SUFFIXES",
    "REQUIREMENT_ID_PREFIX",
    "RUN_LOG_FILENAME",
    "SANDBOX_SCRIPT_STEM",
    "SANDBOX_TEMP_PREFIX",
    "STRUCTURED_SUFFIXES",
]
