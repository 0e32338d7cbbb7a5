"""
reqcheck — sandbox runner

File: src/reqcheck/sandbox/runner.py
Last updated: 2026-10-18

Purpose
- Time-bounded, process-isolated execution of inline test scripts.

Functional requirements
- The script is written into a fresh temporary directory that is removed on every exit path.
- Timeout and non-zero exit both yield ``success=False`` with a descriptive message.
- The child environment is reduced to ``PATH`` plus overrides unless ``inherit_env`` is set.
"""

from __future__ import annotations

import os
import subprocess
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

from reqcheck.constants import (
    DEFAULT_SANDBOX_TIMEOUT_SECONDS,
    SANDBOX_SCRIPT_STEM,
    SANDBOX_TEMP_PREFIX,
)
from reqcheck.domain.models import SandboxResult
from reqcheck.utils.fs import temp_directory

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class SandboxError(RuntimeError):
    """Base error for sandbox runner misconfiguration."""


class SandboxRunner:
    """Run a test script in a separate OS process under a fixed timeout.

    The script is written into a fresh temporary directory that is removed on every
    exit path. The child inherits only ``PATH`` plus explicit overrides unless
    ``inherit_env`` is set. A timeout or a non-zero exit status is a failure.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = DEFAULT_SANDBOX_TIMEOUT_SECONDS,
        interpreter: Sequence[str] | None = None,
        script_suffix: str = ".py",
        cwd: Path | str | None = None,
        env_overrides: Mapping[str, str] | None = None,
        inherit_env: bool = False,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self._timeout_seconds = float(timeout_seconds)
        self._interpreter = _normalize_interpreter(interpreter)
        if not script_suffix.startswith("."):
            script_suffix = f".{script_suffix}"
        self._script_suffix = script_suffix
        self._cwd = Path(cwd) if cwd is not None else None
        self._env_overrides = dict(env_overrides or {})
        self._inherit_env = bool(inherit_env)

    @property
    def timeout_seconds(self) -> float:
        return self._timeout_seconds

    @property
    def interpreter(self) -> tuple[str, ...]:
        return self._interpreter

    def run(self, code: str) -> SandboxResult:
        """Execute ``code`` and return a normalized result. Never raises for script failures."""

        if not isinstance(code, str):
            raise TypeError("code must be a string")

        started = time.perf_counter()
        try:
            with temp_directory(prefix=SANDBOX_TEMP_PREFIX) as workdir:
                script = workdir / f"{SANDBOX_SCRIPT_STEM}{self._script_suffix}"
                script.write_text(code, encoding="utf-8")
                return self._execute(script, started)
        except OSError as exc:
            return SandboxResult(
                success=False,
                error=f"Sandbox setup failed: {exc}",
                duration_ms=_elapsed_ms(started),
            )

    def _execute(self, script: Path, started: float) -> SandboxResult:
        command = [*self._interpreter, str(script)]
        cwd = self._cwd if self._cwd is not None else Path.cwd()
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                check=False,
                capture_output=True,
                text=True,
                timeout=self._timeout_seconds,
                env=self._build_environment(),
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired as exc:
            return SandboxResult(
                success=False,
                output=_coerce_timeout_stream(exc.stdout) or None,
                error=f"Test timed out after {self._timeout_seconds:g} seconds",
                timed_out=True,
                duration_ms=_elapsed_ms(started),
            )
        except OSError as exc:
            return SandboxResult(
                success=False,
                error=f"Failed to start test process: {exc}",
                duration_ms=_elapsed_ms(started),
            )

        duration_ms = _elapsed_ms(started)
        if completed.returncode == 0:
            return SandboxResult(
                success=True,
                output=completed.stdout,
                duration_ms=duration_ms,
            )
        detail = completed.stderr.strip() or completed.stdout.strip()
        message = f"Test exited with status {completed.returncode}"
        return SandboxResult(
            success=False,
            output=completed.stdout or None,
            error=f"{message}: {detail}" if detail else message,
            duration_ms=duration_ms,
        )

    def _build_environment(self) -> dict[str, str]:
        if self._inherit_env:
            merged = dict(os.environ)
        else:
            merged = {}
            host_path = os.environ.get("PATH")
            if host_path:
                merged["PATH"] = host_path
        merged.update(self._env_overrides)
        return merged


def _normalize_interpreter(interpreter: Sequence[str] | None) -> tuple[str, ...]:
    if interpreter is None:
        return (sys.executable,)
    if isinstance(interpreter, str):
        interpreter = interpreter.split()
    normalized = tuple(item.strip() for item in interpreter if item.strip())
    if not normalized:
        raise SandboxError("interpreter must not be empty")
    return normalized


def _coerce_timeout_stream(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000.0


__all__ = ["SandboxError", "SandboxRunner"]
