"""
reqcheck — spec runner

File: src/reqcheck/runs/runner.py
Last updated: 2026-10-18

Purpose
- Verify every outstanding requirement of a spec and record the run.

Functional requirements
- Requirements already marked as passed are skipped.
- Requirements are verified concurrently, optionally bounded by ``max_concurrency``.
- Status writes are drained through the event pipeline before the run is logged.
- When every requirement passed, the spec may be reset for the next run.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from reqcheck.domain.models import Requirement, Spec, Verdict
from reqcheck.observability.logging import correlation_scope
from reqcheck.runs.run_log import RunLog, RunLogEntry
from reqcheck.specs.parser import load_spec

if TYPE_CHECKING:
    from reqcheck.events.pipeline import EventPipeline
    from reqcheck.specs.mutator import SpecMutator
    from reqcheck.verification.orchestrator import RequirementVerifier

_DEFAULT_DRAIN_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class RequirementOutcome:
    """Result for one requirement; ``verdict`` is None when it was skipped."""

    requirement: Requirement
    verdict: Verdict | None

    @property
    def skipped(self) -> bool:
        return self.verdict is None

    @property
    def passed(self) -> bool:
        if self.verdict is None:
            return self.requirement.status
        return self.verdict.passed


@dataclass(frozen=True, slots=True)
class SpecRunResult:
    spec: Spec
    outcomes: tuple[RequirementOutcome, ...]
    reset_count: int = 0
    drained: bool = True

    @property
    def success(self) -> bool:
        return all(outcome.passed for outcome in self.outcomes)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def passed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.passed)


class SpecRunner:
    """Drive a ``RequirementVerifier`` over whole spec documents."""

    def __init__(
        self,
        *,
        verifier: RequirementVerifier,
        pipeline: EventPipeline | None = None,
        mutator: SpecMutator | None = None,
        run_log: RunLog | None = None,
        max_concurrency: int | None = None,
        use_cache: bool = True,
        drain_timeout_seconds: float = _DEFAULT_DRAIN_TIMEOUT_SECONDS,
        logger: Any | None = None,
    ) -> None:
        if max_concurrency is not None and max_concurrency <= 0:
            raise ValueError("max_concurrency must be > 0")
        if drain_timeout_seconds <= 0:
            raise ValueError("drain_timeout_seconds must be > 0")
        self._verifier = verifier
        self._pipeline = pipeline
        self._mutator = mutator
        self._run_log = run_log
        self._max_concurrency = max_concurrency
        self._use_cache = use_cache
        self._drain_timeout_seconds = drain_timeout_seconds
        self._logger = logger if logger is not None else structlog.get_logger(__name__)

    async def run_spec(
        self, spec_path: Path | str, *, reset_on_success: bool = False
    ) -> SpecRunResult:
        """Verify ``spec_path``; raises ``SpecParseError`` when it cannot be loaded."""

        path = Path(spec_path)
        spec = load_spec(path)
        semaphore = asyncio.Semaphore(self._max_concurrency) if self._max_concurrency else None

        async def verify_one(requirement: Requirement) -> RequirementOutcome:
            if requirement.status:
                return RequirementOutcome(requirement=requirement, verdict=None)
            with correlation_scope(spec_path=path.as_posix(), requirement_id=requirement.id):
                if semaphore is None:
                    verdict = await self._verifier.evaluate(
                        requirement, spec, use_cache=self._use_cache
                    )
                else:
                    async with semaphore:
                        verdict = await self._verifier.evaluate(
                            requirement, spec, use_cache=self._use_cache
                        )
            return RequirementOutcome(requirement=requirement, verdict=verdict)

        with correlation_scope(spec_path=path.as_posix()):
            verified = await asyncio.gather(*(verify_one(item) for item in spec.requirements))
            outcomes = tuple(verified)
            drained = await self._wait_for_pipeline()

            result = SpecRunResult(spec=spec, outcomes=outcomes, drained=drained)
            if self._run_log is not None:
                self._run_log.append(
                    RunLogEntry.for_spec(
                        path,
                        result.success,
                        [_with_status(outcome) for outcome in outcomes],
                    )
                )

            reset_count = 0
            if result.success and reset_on_success and self._mutator is not None:
                reset_count = await asyncio.to_thread(self._mutator.reset, path)

            self._logger.info(
                "spec_run_finished",
                success=result.success,
                total=result.total,
                passed=result.passed,
                skipped=sum(1 for outcome in outcomes if outcome.skipped),
                reset_count=reset_count,
            )
        return SpecRunResult(spec=spec, outcomes=outcomes, reset_count=reset_count, drained=drained)

    async def _wait_for_pipeline(self) -> bool:
        if self._pipeline is None:
            return True
        drained = await asyncio.to_thread(self._pipeline.wait_idle, self._drain_timeout_seconds)
        if not drained:
            self._logger.warning(
                "event_pipeline_not_idle", timeout_seconds=self._drain_timeout_seconds
            )
        return drained


def _with_status(outcome: RequirementOutcome) -> Requirement:
    requirement = outcome.requirement
    return Requirement(
        id=requirement.id,
        text=requirement.text,
        inline_test=requirement.inline_test,
        status=outcome.passed,
    )


__all__ = ["RequirementOutcome", "SpecRunResult", "SpecRunner"]
