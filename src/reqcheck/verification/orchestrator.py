"""
reqcheck — requirement verification orchestrator

File: src/reqcheck/verification/orchestrator.py
Last updated: 2026-10-18

Purpose
- Decide pass/fail for one requirement by running a fixed strategy chain.

Functional requirements
- Order: policy table, cache lookup, inline test, reasoning call, confirmation gate, cache write.
- A cached verdict answers the requirement without spawning a sandbox subprocess.
- The first decisive strategy short-circuits the rest.
- Verification failures become a failed verdict with a reason; ``verify`` never raises for them.
- Emit START, PROGRESS per strategy, then COMPLETE, or ERROR when an unexpected fault occurred.

Non-functional requirements
- Blocking work (sandbox, hashing, cache IO, file reads) runs in worker threads.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Final

import structlog

from reqcheck.domain.events import VerificationEvent
from reqcheck.domain.models import (
    FileContent,
    Requirement,
    SandboxResult,
    Spec,
    Verdict,
    VerdictSource,
)
from reqcheck.reasoning.base import ProviderError
from reqcheck.reasoning.prompts import PromptTemplateError, prompt_version
from reqcheck.reasoning.verdict_parser import ParseFailure, parse_verdict
from reqcheck.utils.hashing import compute_cache_key

if TYPE_CHECKING:
    from reqcheck.cache.store import VerdictCache
    from reqcheck.events.pipeline import EventPipeline
    from reqcheck.reasoning.base import ReasoningService
    from reqcheck.sandbox.runner import SandboxRunner
    from reqcheck.verification.policy import VerificationPolicy

NO_REASONING_SERVICE_REASON: Final[str] = "No reasoning service is configured."
REASONING_ERROR_REASON: Final[str] = "Error checking requirement with AI."


class RequirementVerifier:
    """Run the verification strategy chain for requirements of a spec."""

    def __init__(
        self,
        *,
        sandbox: SandboxRunner,
        cache: VerdictCache | None = None,
        reasoning: ReasoningService | None = None,
        pipeline: EventPipeline | None = None,
        policy: VerificationPolicy | None = None,
        include_prompt_version: bool = False,
        logger: Any | None = None,
    ) -> None:
        self._sandbox = sandbox
        self._cache = cache
        self._reasoning = reasoning
        self._pipeline = pipeline
        self._policy = policy
        self._include_prompt_version = bool(include_prompt_version)
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def verify(self, requirement: Requirement, spec: Spec, *, use_cache: bool = True) -> bool:
        verdict = await self.evaluate(requirement, spec, use_cache=use_cache)
        return verdict.passed

    async def evaluate(
        self,
        requirement: Requirement,
        spec: Spec,
        *,
        use_cache: bool = True,
    ) -> Verdict:
        """Return the full verdict for ``requirement``; emits lifecycle events."""

        self._publish(VerificationEvent.start(requirement.id, spec.path, requirement.text))
        try:
            verdict = await self._run_chain(requirement, spec, use_cache=use_cache)
        except Exception as exc:  # noqa: BLE001
            self._logger.exception(
                "verification_failed",
                requirement_id=requirement.id,
                error_type=exc.__class__.__name__,
            )
            self._publish(VerificationEvent.error(requirement.id, spec.path, str(exc) or repr(exc)))
            return Verdict(
                passed=False,
                reason=f"Verification error: {exc}",
                source=VerdictSource.ERROR,
            )

        self._logger.info(
            "verdict",
            requirement_id=requirement.id,
            passed=verdict.passed,
            source=verdict.source.value,
        )
        self._publish(
            VerificationEvent.complete(requirement.id, spec.path, verdict.passed, verdict.reason)
        )
        return verdict

    async def _run_chain(self, requirement: Requirement, spec: Spec, *, use_cache: bool) -> Verdict:
        if self._policy is not None:
            forced = self._policy.evaluate(requirement, spec)
            if forced is not None:
                self._progress(requirement, spec, 0.9, "Verdict set by verification policy")
                return forced

        cache_key = await asyncio.to_thread(
            compute_cache_key,
            spec.files,
            requirement.text,
            policy_version=prompt_version() if self._include_prompt_version else None,
        )

        if use_cache and self._cache is not None:
            self._progress(requirement, spec, 0.2, "Checking cache")
            cached = await asyncio.to_thread(self._cache.get, cache_key)
            if cached is not None:
                return cached

        if requirement.inline_test is not None:
            self._progress(requirement, spec, 0.3, "Running inline test")
            outcome = await self._run_sandbox(requirement.inline_test)
            if outcome is not None:
                verdict = Verdict(
                    passed=outcome.success,
                    reason=outcome.describe(),
                    source=VerdictSource.SANDBOX,
                )
                await self._store(cache_key, verdict)
                return verdict
            self._progress(requirement, spec, 0.4, "Inline test unavailable; falling back")

        self._progress(requirement, spec, 0.6, "Consulting reasoning service")
        verdict = await self._reason(requirement, spec.files)

        if verdict.passed and requirement.inline_test is not None:
            self._progress(requirement, spec, 0.8, "Running confirmation test")
            confirmation = await self._run_sandbox(requirement.inline_test)
            if confirmation is None or not confirmation.success:
                detail = (
                    confirmation.describe()
                    if confirmation is not None
                    else "sandbox could not run the test"
                )
                verdict = Verdict(
                    passed=False,
                    reason=f"Test failed: {detail}",
                    source=VerdictSource.CONFIRMATION,
                )

        if verdict.source is not VerdictSource.ERROR:
            await self._store(cache_key, verdict)
        return verdict

    async def _reason(self, requirement: Requirement, files: Sequence[Path]) -> Verdict:
        if self._reasoning is None:
            return Verdict(
                passed=False, reason=NO_REASONING_SERVICE_REASON, source=VerdictSource.ERROR
            )

        contents = await asyncio.to_thread(read_file_contents, files)
        try:
            response = await self._reasoning.complete(requirement.text, contents)
        except (ProviderError, PromptTemplateError, OSError, asyncio.TimeoutError) as exc:
            self._logger.warning(
                "reasoning_failed",
                requirement_id=requirement.id,
                error_type=exc.__class__.__name__,
                error=str(exc),
            )
            return Verdict(passed=False, reason=REASONING_ERROR_REASON, source=VerdictSource.ERROR)

        parsed = parse_verdict(response)
        if isinstance(parsed, ParseFailure):
            self._logger.info(
                "reasoning_unparseable",
                requirement_id=requirement.id,
                excerpt=parsed.raw_excerpt,
            )
            return Verdict(passed=False, reason=parsed.reason, source=VerdictSource.REASONING)
        return Verdict(passed=parsed.passed, reason=parsed.reason, source=VerdictSource.REASONING)

    async def _run_sandbox(self, code: str) -> SandboxResult | None:
        try:
            return await asyncio.to_thread(self._sandbox.run, code)
        except Exception as exc:  # noqa: BLE001
            self._logger.warning(
                "sandbox_failed",
                error_type=exc.__class__.__name__,
                error=str(exc),
            )
            return None

    async def _store(self, cache_key: str, verdict: Verdict) -> None:
        if self._cache is None:
            return
        await asyncio.to_thread(self._cache.put, cache_key, verdict)

    def _progress(
        self, requirement: Requirement, spec: Spec, progress: float, message: str
    ) -> None:
        self._publish(
            VerificationEvent.progress_update(requirement.id, spec.path, progress, message)
        )

    def _publish(self, event: VerificationEvent) -> None:
        if self._pipeline is not None:
            self._pipeline.publish(event)


def read_file_contents(files: Sequence[Path]) -> list[FileContent]:
    """Read referenced files for the reasoning prompt; unreadable files are annotated."""

    contents: list[FileContent] = []
    for item in files:
        path = Path(item)
        label = path.as_posix()
        if not path.exists():
            contents.append(FileContent(path=label, content=None, error="not found"))
            continue
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            contents.append(FileContent(path=label, content=None, error="error reading file"))
            continue
        contents.append(FileContent(path=label, content=text))
    return contents


__all__ = [
    "NO_REASONING_SERVICE_REASON",
    "REASONING_ERROR_REASON",
    "RequirementVerifier",
    "read_file_contents",
]
