"""
reqcheck — verdict cache store

File: src/reqcheck/cache/store.py
Last updated: 2026-10-18

Purpose
- Persist verdicts keyed by the content hash of referenced files plus requirement text.

Functional requirements
- ``get`` returns ``None`` on a miss; any storage failure is also a miss.
- ``put`` never raises; failures are logged at WARNING.
- Optional bounded eviction by age and by row count.

Non-functional requirements
- Open and close the SQLite connection per call so concurrent callers never share one.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from collections.abc import Iterable, Iterator
from contextlib import closing, contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Final

from reqcheck.constants import CACHE_DB_FILENAME, CACHE_DIR
from reqcheck.domain.models import CacheEntry, Verdict, VerdictSource

logger = logging.getLogger(__name__)

DEFAULT_BUSY_TIMEOUT_SECONDS: Final[float] = 5.0

_SCHEMA: Final[str] = (
    "CREATE TABLE IF NOT EXISTS results ("
    "key TEXT PRIMARY KEY, "
    "result TEXT NOT NULL, "
    "timestamp INTEGER NOT NULL)"
)


def default_cache_path() -> Path:
    return (CACHE_DIR / CACHE_DB_FILENAME).expanduser()


class VerdictCache:
    """SQLite-backed verdict store.

    Rows hold ``{"passed": bool, "reason": str}`` as JSON plus a write timestamp in
    epoch milliseconds.
    """

    def __init__(
        self,
        path: Path | str | None = None,
        *,
        max_entries: int | None = None,
        max_age_seconds: float | None = None,
        busy_timeout_seconds: float = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ) -> None:
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be > 0 when provided")
        if max_age_seconds is not None and max_age_seconds <= 0:
            raise ValueError("max_age_seconds must be > 0 when provided")
        self._path = Path(path).expanduser() if path is not None else default_cache_path()
        self._max_entries = max_entries
        self._max_age_seconds = max_age_seconds
        self._busy_timeout_seconds = float(busy_timeout_seconds)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def max_entries(self) -> int | None:
        return self._max_entries

    @property
    def max_age_seconds(self) -> float | None:
        return self._max_age_seconds

    def get(self, key: str) -> Verdict | None:
        entry = self.get_entry(key)
        return entry.verdict if entry is not None else None

    def get_entry(self, key: str) -> CacheEntry | None:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT result, timestamp FROM results WHERE key = ?", (key,)
                ).fetchone()
        except (OSError, sqlite3.Error) as exc:
            logger.warning("cache read failed for %s: %s", key[:12], exc)
            return None
        if row is None:
            return None

        raw_result, raw_timestamp = row
        try:
            verdict = Verdict.from_dict(json.loads(raw_result), source=VerdictSource.CACHE)
            written_ms = int(raw_timestamp)
        except (TypeError, ValueError) as exc:
            logger.warning("cache row for %s is corrupt: %s", key[:12], exc)
            return None

        if self._is_expired(written_ms):
            return None
        return CacheEntry(
            key=key,
            verdict=verdict,
            created_at=datetime.fromtimestamp(written_ms / 1000.0, tz=UTC),
        )

    def put(self, key: str, verdict: Verdict) -> None:
        payload = json.dumps(verdict.to_dict(), sort_keys=True, separators=(",", ":"))
        now_ms = _now_ms()
        try:
            with self._connect(create=True) as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO results (key, result, timestamp) VALUES (?, ?, ?)",
                    (key, payload, now_ms),
                )
                self._evict(conn, now_ms)
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            logger.warning("cache write failed for %s: %s", key[:12], exc)

    def prune(self, valid_keys: Iterable[str]) -> int:
        """Delete every entry whose key is not in ``valid_keys``; return the count removed."""

        keep = set(valid_keys)
        try:
            with self._connect() as conn:
                stored = [row[0] for row in conn.execute("SELECT key FROM results")]
                orphans = [(item,) for item in stored if item not in keep]
                conn.executemany("DELETE FROM results WHERE key = ?", orphans)
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            logger.warning("cache prune failed: %s", exc)
            return 0
        return len(orphans)

    def clear(self) -> int:
        try:
            with self._connect() as conn:
                removed = conn.execute("DELETE FROM results").rowcount
                conn.commit()
        except (OSError, sqlite3.Error) as exc:
            logger.warning("cache clear failed: %s", exc)
            return 0
        return max(removed, 0)

    def count(self) -> int:
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT COUNT(*) FROM results").fetchone()
        except (OSError, sqlite3.Error) as exc:
            logger.warning("cache count failed: %s", exc)
            return 0
        return int(row[0]) if row is not None else 0

    @contextmanager
    def _connect(self, *, create: bool = False) -> Iterator[sqlite3.Connection]:
        if create:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        elif not self._path.exists():
            # Reads against a missing database behave like an empty one.
            with closing(sqlite3.connect(":memory:")) as empty:
                empty.execute(_SCHEMA)
                yield empty
            return
        with closing(sqlite3.connect(self._path, timeout=self._busy_timeout_seconds)) as conn:
            conn.execute(_SCHEMA)
            yield conn

    def _evict(self, conn: sqlite3.Connection, now_ms: int) -> None:
        if self._max_age_seconds is not None:
            cutoff = now_ms - int(self._max_age_seconds * 1000)
            conn.execute("DELETE FROM results WHERE timestamp < ?", (cutoff,))
        if self._max_entries is not None:
            conn.execute(
                "DELETE FROM results WHERE key IN ("
                "SELECT key FROM results ORDER BY timestamp DESC, rowid DESC LIMIT -1 OFFSET ?)",
                (self._max_entries,),
            )

    def _is_expired(self, written_ms: int) -> bool:
        if self._max_age_seconds is None:
            return False
        return _now_ms() - written_ms > int(self._max_age_seconds * 1000)


def _now_ms() -> int:
    return int(time.time() * 1000)


__all__ = ["DEFAULT_BUSY_TIMEOUT_SECONDS", "VerdictCache", "default_cache_path"]
