"""
reqcheck — domain layer

File: src/reqcheck/domain/__init__.py
Last updated: 2026-10-18

Purpose
- Domain types shared across components: Requirement, Spec, Verdict, CacheEntry,
  SandboxResult, and verification lifecycle events.

Functional requirements
- Keep the domain layer free of IO side effects.
"""

from reqcheck.domain.events import EventType, VerificationEvent
from reqcheck.domain.models import (
    CacheEntry,
    FileContent,
    Requirement,
    SandboxResult,
    Spec,
    SpecFormat,
    Verdict,
    VerdictSource,
)

__all__ = [
    "CacheEntry",
    "EventType",
    "FileContent",
    "Requirement",
    "SandboxResult",
    "Spec",
    "SpecFormat",
    "Verdict",
    "VerdictSource",
    "VerificationEvent",
]
