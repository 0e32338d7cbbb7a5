"""
reqcheck — verification policy table

File: src/reqcheck/verification/policy.py
Last updated: 2026-10-18

Purpose
- Data-driven verdict overrides for requirements that must not reach the strategy chain.

Functional requirements
- A rule matches by spec-path glob and an optional requirement-text substring.
- Rules are evaluated in file order; the first match wins.

File format (YAML)::

    rules:
      - spec: "specs/legacy-*.md"
        contains: "backwards compatible"
        passed: true
        reason: "Accepted by release review."
"""

from __future__ import annotations

import fnmatch
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

import yaml

from reqcheck.domain.models import Requirement, Spec, Verdict, VerdictSource
from reqcheck.utils.hashing import sha256_text


class PolicyLoadError(ValueError):
    """Raised when a policy file cannot be read or is malformed."""


@dataclass(frozen=True, slots=True)
class PolicyRule:
    spec_glob: str
    passed: bool
    reason: str
    contains: str | None = None

    def matches(self, requirement: Requirement, spec_path: Path | None) -> bool:
        if spec_path is None:
            return False
        posix = spec_path.as_posix()
        if not (
            fnmatch.fnmatchcase(posix, self.spec_glob)
            or fnmatch.fnmatchcase(spec_path.name, self.spec_glob)
        ):
            return False
        if self.contains is None:
            return True
        return self.contains.lower() in requirement.text.lower()


@dataclass(frozen=True, slots=True)
class VerificationPolicy:
    """Ordered collection of policy rules."""

    rules: tuple[PolicyRule, ...] = ()

    @classmethod
    def empty(cls) -> VerificationPolicy:
        return cls()

    @classmethod
    def load(cls, path: Path | str) -> VerificationPolicy:
        policy_path = Path(path)
        try:
            with policy_path.open("r", encoding="utf-8") as handle:
                payload = yaml.safe_load(handle)
        except OSError as exc:
            raise PolicyLoadError(
                f"Failed to read policy file {policy_path.as_posix()}: {exc}"
            ) from exc
        except yaml.YAMLError as exc:
            raise PolicyLoadError(f"Invalid YAML in {policy_path.as_posix()}: {exc}") from exc
        return cls.from_payload(payload, source=policy_path.as_posix())

    @classmethod
    def from_payload(cls, payload: object, *, source: str = "<policy>") -> VerificationPolicy:
        if payload is None:
            return cls()
        records: Sequence[object]
        if isinstance(payload, list):
            records = payload
        elif isinstance(payload, Mapping) and isinstance(payload.get("rules"), list):
            records = payload["rules"]
        else:
            raise PolicyLoadError(f"{source} must be a list or contain a 'rules' list")
        return cls(
            rules=tuple(
                _coerce_rule(record, f"{source}[{index}]") for index, record in enumerate(records)
            )
        )

    @property
    def version(self) -> str:
        """Stable hash of the rule set."""

        encoded = "\n".join(
            f"{rule.spec_glob}\x00{rule.contains or ''}\x00{rule.passed}\x00{rule.reason}"
            for rule in self.rules
        )
        return sha256_text(encoded)

    def evaluate(self, requirement: Requirement, spec: Spec) -> Verdict | None:
        for rule in self.rules:
            if rule.matches(requirement, spec.path):
                return Verdict(passed=rule.passed, reason=rule.reason, source=VerdictSource.POLICY)
        return None


def _coerce_rule(record: object, entry_path: str) -> PolicyRule:
    if not isinstance(record, Mapping):
        raise PolicyLoadError(f"{entry_path} must be an object")
    spec_glob = record.get("spec")
    if not isinstance(spec_glob, str) or not spec_glob.strip():
        raise PolicyLoadError(f"{entry_path}.spec must be a non-empty string")
    passed = record.get("passed")
    if not isinstance(passed, bool):
        raise PolicyLoadError(f"{entry_path}.passed must be a boolean")
    contains = record.get("contains")
    if contains is not None and (not isinstance(contains, str) or not contains.strip()):
        raise PolicyLoadError(f"{entry_path}.contains must be a non-empty string when set")
    reason = record.get("reason")
    if reason is None:
        reason = "Verdict set by verification policy."
    if not isinstance(reason, str):
        raise PolicyLoadError(f"{entry_path}.reason must be a string")
    return PolicyRule(
        spec_glob=spec_glob.strip(),
        passed=passed,
        reason=reason,
        contains=contains.strip() if isinstance(contains, str) else None,
    )


__all__ = ["PolicyLoadError", "PolicyRule", "VerificationPolicy"]
