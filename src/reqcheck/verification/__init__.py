"""Requirement verification strategy chain and policy overrides."""

from reqcheck.verification.orchestrator import RequirementVerifier, read_file_contents
from reqcheck.verification.policy import PolicyLoadError, PolicyRule, VerificationPolicy

__all__ = [
    "PolicyLoadError",
    "PolicyRule",
    "RequirementVerifier",
    "VerificationPolicy",
    "read_file_contents",
]
