"""Isolated execution of inline requirement tests."""

from reqcheck.sandbox.runner import SandboxError, SandboxRunner

__all__ = ["SandboxError", "SandboxRunner"]
