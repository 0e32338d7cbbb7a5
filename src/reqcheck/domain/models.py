"""Core domain records: requirements, specs, verdicts, cache entries, sandbox results."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TypeAlias

JSONScalar: TypeAlias = str | int | float | bool | None
JSONValue: TypeAlias = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]


class SpecFormat(StrEnum):
    """On-disk spec document format."""

    MARKDOWN = "markdown"
    STRUCTURED = "structured"


class VerdictSource(StrEnum):
    """Strategy that produced a verdict. Diagnostic only; never part of a cache key."""

    SANDBOX = "sandbox"
    CACHE = "cache"
    REASONING = "reasoning"
    CONFIRMATION = "confirmation"
    POLICY = "policy"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class Requirement:
    """A single natural-language assertion about code behavior."""

    id: str
    text: str
    inline_test: str | None = None
    status: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "id", _as_non_empty_str(self.id, "Requirement.id"))
        object.__setattr__(self, "text", _as_non_empty_str(self.text, "Requirement.text"))
        if self.inline_test is not None:
            if not isinstance(self.inline_test, str):
                raise TypeError("Requirement.inline_test must be a string")
            if not self.inline_test.strip():
                object.__setattr__(self, "inline_test", None)
        object.__setattr__(self, "status", bool(self.status))

    def to_dict(self) -> dict[str, JSONValue]:
        payload: dict[str, JSONValue] = {"id": self.id, "text": self.text, "status": self.status}
        if self.inline_test is not None:
            payload["inline_test"] = self.inline_test
        return payload


@dataclass(frozen=True, slots=True)
class Spec:
    """A spec document: referenced files plus the requirements it owns."""

    title: str
    files: tuple[Path, ...]
    requirements: tuple[Requirement, ...]
    format: SpecFormat = SpecFormat.MARKDOWN
    path: Path | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.title, str):
            raise TypeError("Spec.title must be a string")
        object.__setattr__(self, "files", tuple(Path(item) for item in self.files))
        requirements = tuple(self.requirements)
        for item in requirements:
            if not isinstance(item, Requirement):
                raise TypeError("Spec.requirements must contain Requirement instances")
        object.__setattr__(self, "requirements", requirements)
        object.__setattr__(self, "format", SpecFormat(self.format))
        if self.path is not None:
            object.__setattr__(self, "path", Path(self.path))

    def find_requirement(self, requirement_id: str) -> Requirement | None:
        """Return the requirement with ``requirement_id``; fall back to exact text match."""

        for item in self.requirements:
            if item.id == requirement_id:
                return item
        for item in self.requirements:
            if item.text == requirement_id:
                return item
        return None


@dataclass(frozen=True, slots=True)
class Verdict:
    """Immutable pass/fail outcome plus a human-readable reason."""

    passed: bool
    reason: str
    source: VerdictSource = VerdictSource.REASONING

    def __post_init__(self) -> None:
        if not isinstance(self.passed, bool):
            raise TypeError("Verdict.passed must be a bool")
        if not isinstance(self.reason, str):
            raise TypeError("Verdict.reason must be a string")
        object.__setattr__(self, "source", VerdictSource(self.source))

    def to_dict(self) -> dict[str, JSONValue]:
        """Cache payload shape: ``{"passed": bool, "reason": str}``."""

        return {"passed": self.passed, "reason": self.reason}

    @classmethod
    def from_dict(
        cls,
        data: object,
        *,
        source: VerdictSource = VerdictSource.CACHE,
    ) -> Verdict:
        if not isinstance(data, dict):
            raise ValueError(f"Verdict: expected object, got {type(data).__name__}")
        passed = data.get("passed")
        if not isinstance(passed, bool):
            raise ValueError("Verdict.passed: expected boolean")
        reason = data.get("reason", "")
        if not isinstance(reason, str):
            raise ValueError("Verdict.reason: expected string")
        return cls(passed=passed, reason=reason, source=source)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One persisted cache row."""

    key: str
    verdict: Verdict
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def __post_init__(self) -> None:
        object.__setattr__(self, "key", _as_non_empty_str(self.key, "CacheEntry.key"))
        if self.created_at.tzinfo is None or self.created_at.utcoffset() is None:
            raise ValueError("CacheEntry.created_at must be timezone-aware")


@dataclass(frozen=True, slots=True)
class SandboxResult:
    """Normalized outcome of one sandbox run. Callers only need ``success``."""

    success: bool
    output: str | None = None
    error: str | None = None
    timed_out: bool = False
    duration_ms: float = 0.0

    def describe(self) -> str:
        """Best available diagnostic text for a verdict reason."""

        if self.success:
            return "Test script passed."
        return self.error or self.output or "Test execution failed."


@dataclass(frozen=True, slots=True)
class FileContent:
    """A referenced file as handed to the reasoning service."""

    path: str
    content: str | None
    error: str | None = None

    def render(self) -> str:
        if self.content is not None:
            return f"[{self.path}]:\n{self.content}"
        return f"[{self.path}] ({self.error or 'not found'})"


def _as_non_empty_str(value: object, path: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{path}: expected string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{path}: must not be empty")
    return normalized


__all__ = [
    "CacheEntry",
    "FileContent",
    "JSONScalar",
    "JSONValue",
    "Requirement",
    "SandboxResult",
    "Spec",
    "SpecFormat",
    "Verdict",
    "VerdictSource",
]
