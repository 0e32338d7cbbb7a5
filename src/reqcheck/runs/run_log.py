"""
reqcheck — run log

File: src/reqcheck/runs/run_log.py
Last updated: 2026-10-18

Purpose
- Newline-delimited JSON log of spec runs under ``<log_dir>/run.log``.

Functional requirements
- One line per run: timestamp, spec name, success, totals, per-requirement status.
- Readers skip malformed lines; ``latest`` keeps the last entry per spec.
- Append failures are logged and reported, never raised.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from reqcheck.constants import LOG_DIR, RUN_LOG_FILENAME
from reqcheck.domain.models import JSONValue, Requirement

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RunLogEntry:
    """One line of ``run.log``: the outcome of running a single spec."""

    spec: str
    success: bool
    requirements: tuple[tuple[str, bool], ...]
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        if not self.spec.strip():
            raise ValueError("RunLogEntry.spec must be a non-empty string")
        if self.timestamp.tzinfo is None:
            raise ValueError("RunLogEntry.timestamp must be timezone-aware")

    @classmethod
    def for_spec(
        cls,
        spec_path: Path | str,
        success: bool,
        requirements: Sequence[Requirement],
    ) -> RunLogEntry:
        return cls(
            spec=Path(spec_path).stem,
            success=success,
            requirements=tuple((item.text, item.status) for item in requirements),
        )

    @property
    def total(self) -> int:
        return len(self.requirements)

    @property
    def passed(self) -> int:
        return sum(1 for _, status in self.requirements if status)

    def to_dict(self) -> dict[str, JSONValue]:
        stamp = self.timestamp.astimezone(UTC).isoformat(timespec="milliseconds")
        return {
            "timestamp": stamp.replace("+00:00", "Z"),
            "spec": self.spec,
            "success": self.success,
            "total": self.total,
            "passed": self.passed,
            "requirements": [
                {"text": text, "status": status} for text, status in self.requirements
            ],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> RunLogEntry:
        raw_items = data.get("requirements")
        if not isinstance(raw_items, list):
            raise ValueError("run log entry requires a 'requirements' list")
        items: list[tuple[str, bool]] = []
        for raw in raw_items:
            if not isinstance(raw, dict):
                raise ValueError("run log requirement must be an object")
            items.append((str(raw.get("text", "")), raw.get("status") is True))
        raw_stamp = data.get("timestamp")
        if not isinstance(raw_stamp, str):
            raise ValueError("run log entry requires a 'timestamp' string")
        stamp = datetime.fromisoformat(raw_stamp.replace("Z", "+00:00"))
        return cls(
            spec=str(data.get("spec", "")),
            success=data.get("success") is True,
            requirements=tuple(items),
            timestamp=stamp,
        )


class RunLog:
    """Append-only ``<log_dir>/run.log`` writer and reader."""

    def __init__(self, log_dir: Path | str | None = None) -> None:
        self._path = Path(log_dir if log_dir is not None else LOG_DIR) / RUN_LOG_FILENAME

    @property
    def path(self) -> Path:
        return self._path

    def append(self, entry: RunLogEntry) -> bool:
        """Append ``entry``; logging failures are reported and never raised."""

        line = json.dumps(entry.to_dict(), ensure_ascii=False, separators=(",", ":"))
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            logger.warning("failed to append run log %s: %s", self._path.as_posix(), exc)
            return False
        return True

    def entries(self) -> Iterator[RunLogEntry]:
        """Yield parseable entries in file order; malformed lines are skipped."""

        try:
            handle = self._path.open("r", encoding="utf-8")
        except FileNotFoundError:
            return
        with handle:
            for number, raw in enumerate(handle, start=1):
                if not raw.strip():
                    continue
                try:
                    payload = json.loads(raw)
                    if not isinstance(payload, dict):
                        raise ValueError("entry is not an object")
                    yield RunLogEntry.from_dict(payload)
                except ValueError as exc:
                    logger.warning("skipping run log line %d: %s", number, exc)

    def latest(self) -> dict[str, RunLogEntry]:
        """Most recent entry per spec name."""

        latest: dict[str, RunLogEntry] = {}
        for entry in self.entries():
            latest[entry.spec] = entry
        return latest


__all__ = ["RunLog", "RunLogEntry"]
