"""Verification lifecycle events and their serialization."""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path

from reqcheck.domain.models import JSONValue


class EventType(StrEnum):
    """Per-requirement lifecycle: ``START -> PROGRESS* -> (COMPLETE | ERROR)``."""

    START = "start"
    PROGRESS = "progress"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class VerificationEvent:
    """Transient notification produced by a verification run."""

    type: EventType
    requirement_id: str
    spec_path: Path | None = None
    message: str | None = None
    progress: float | None = None
    result: bool | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        object.__setattr__(self, "type", _as_event_type(self.type))
        if not isinstance(self.requirement_id, str) or not self.requirement_id.strip():
            raise ValueError("VerificationEvent.requirement_id must be a non-empty string")
        if self.spec_path is not None:
            object.__setattr__(self, "spec_path", Path(self.spec_path))
        if self.progress is not None:
            progress = float(self.progress)
            if not math.isfinite(progress) or not 0.0 <= progress <= 1.0:
                raise ValueError("VerificationEvent.progress must be within [0.0, 1.0]")
            object.__setattr__(self, "progress", progress)
        if self.result is not None and not isinstance(self.result, bool):
            raise TypeError("VerificationEvent.result must be a bool when provided")
        if self.type is EventType.COMPLETE and self.result is None:
            raise ValueError("COMPLETE events must carry a result")
        if self.timestamp.tzinfo is None or self.timestamp.utcoffset() is None:
            raise ValueError("VerificationEvent.timestamp must be timezone-aware")

    @classmethod
    def start(
        cls,
        requirement_id: str,
        spec_path: Path | None,
        message: str | None = None,
    ) -> VerificationEvent:
        return cls(EventType.START, requirement_id, spec_path, message=message)

    @classmethod
    def progress_update(
        cls,
        requirement_id: str,
        spec_path: Path | None,
        progress: float,
        message: str,
    ) -> VerificationEvent:
        return cls(
            EventType.PROGRESS, requirement_id, spec_path, message=message, progress=progress
        )

    @classmethod
    def complete(
        cls,
        requirement_id: str,
        spec_path: Path | None,
        result: bool,
        message: str | None = None,
    ) -> VerificationEvent:
        return cls(EventType.COMPLETE, requirement_id, spec_path, message=message, result=result)

    @classmethod
    def error(cls, requirement_id: str, spec_path: Path | None, message: str) -> VerificationEvent:
        return cls(EventType.ERROR, requirement_id, spec_path, message=message)

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {
            "type": self.type.value,
            "timestamp": _datetime_to_iso8601z(self.timestamp),
            "requirement_id": self.requirement_id,
            "spec_path": self.spec_path.as_posix() if self.spec_path is not None else None,
            "message": self.message,
        }
        if self.progress is not None:
            payload["progress"] = self.progress
        if self.result is not None:
            payload["result"] = self.result
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _as_event_type(value: object) -> EventType:
    if isinstance(value, EventType):
        return value
    if not isinstance(value, str):
        raise ValueError(f"event type must be a string, got {type(value).__name__}")
    try:
        return EventType(value.strip().lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in EventType)
        raise ValueError(f"invalid event type {value!r}; allowed: {allowed}") from exc


def _datetime_to_iso8601z(value: datetime) -> str:
    return value.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


__all__ = ["EventType", "VerificationEvent"]
