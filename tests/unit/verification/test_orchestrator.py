"""
reqcheck — unit tests for the requirement verification orchestrator

File: tests/unit/verification/test_orchestrator.py
Last updated: 2026-10-18

Purpose
- Validate the fixed strategy chain: policy, cache, inline test, reasoning, confirmation.

What this test file should cover
- Short-circuiting by the first decisive strategy.
- Idempotence: an unchanged requirement is answered from the cache with zero reasoning calls.
- Confirmation gate overriding a passing reasoning verdict.
- Failure containment: reasoning errors and unexpected faults become failed verdicts.
- Lifecycle event emission order.

Functional requirements
- Offline; reasoning services and sandboxes are in-process fakes.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from reqcheck.cache.store import VerdictCache
from reqcheck.domain.events import EventType, VerificationEvent
from reqcheck.domain.models import (
    FileContent,
    Requirement,
    SandboxResult,
    Spec,
    Verdict,
    VerdictSource,
)
from reqcheck.events.pipeline import EventPipeline
from reqcheck.reasoning.base import ProviderRateLimitError
from reqcheck.reasoning.prompts import prompt_version
from reqcheck.reasoning.verdict_parser import PARSE_FAILURE_REASON
from reqcheck.sandbox.runner import SandboxRunner
from reqcheck.utils.hashing import compute_cache_key
from reqcheck.verification.orchestrator import (
    NO_REASONING_SERVICE_REASON,
    REASONING_ERROR_REASON,
    RequirementVerifier,
    read_file_contents,
)
from reqcheck.verification.policy import VerificationPolicy


@dataclass(slots=True)
class _ScriptedSandbox:
    outcomes: deque[SandboxResult | Exception]
    calls: list[str] = field(default_factory=list)

    def run(self, code: str) -> SandboxResult:
        self.calls.append(code)
        outcome = self.outcomes.popleft()
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@dataclass(slots=True)
class _CountingReasoning:
    responses: deque[str | Exception]
    calls: list[tuple[str, tuple[FileContent, ...]]] = field(default_factory=list)

    async def complete(self, requirement_text: str, file_contents: object) -> str:
        self.calls.append((requirement_text, tuple(file_contents)))  # type: ignore[arg-type]
        response = self.responses.popleft()
        if isinstance(response, Exception):
            raise response
        return response


@dataclass(slots=True)
class _MemoryCache:
    rows: dict[str, Verdict] = field(default_factory=dict)
    gets: int = 0

    def get(self, key: str) -> Verdict | None:
        self.gets += 1
        return self.rows.get(key)

    def put(self, key: str, verdict: Verdict) -> None:
        self.rows[key] = verdict


class _ExplodingCache(_MemoryCache):
    def get(self, key: str) -> Verdict | None:
        raise RuntimeError("disk on fire")


@dataclass(slots=True)
class _RecordingPipeline:
    events: list[VerificationEvent] = field(default_factory=list)

    def publish(self, event: VerificationEvent) -> None:
        self.events.append(event)


def _spec(tmp_path: Path, *requirements: Requirement, files: tuple[Path, ...] = ()) -> Spec:
    return Spec(
        title="Calculator",
        files=files,
        requirements=requirements,
        path=tmp_path / "calculator.md",
    )


def _source(tmp_path: Path, text: str = "def add(a, b):\n    return a + b\n") -> Path:
    path = tmp_path / "calc.py"
    path.write_text(text, encoding="utf-8")
    return path


def _verifier(**kwargs: object) -> RequirementVerifier:
    kwargs.setdefault("sandbox", _ScriptedSandbox(deque()))
    return RequirementVerifier(**kwargs)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_inline_test_short_circuits_reasoning_and_is_cached(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works", inline_test="assert True\n")
    spec = _spec(tmp_path, requirement)
    sandbox = _ScriptedSandbox(deque([SandboxResult(success=True)]))
    reasoning = _CountingReasoning(deque())
    cache = _MemoryCache()

    verdict = await _verifier(sandbox=sandbox, reasoning=reasoning, cache=cache).evaluate(
        requirement, spec
    )

    assert verdict == Verdict(True, "Test script passed.", VerdictSource.SANDBOX)
    assert sandbox.calls == ["assert True\n"]
    assert reasoning.calls == []
    assert list(cache.rows.values()) == [verdict]
    assert cache.gets == 1


class _CountingSandboxRunner(SandboxRunner):
    def __init__(self) -> None:
        super().__init__(timeout_seconds=10.0)
        self.runs = 0

    def run(self, code: str) -> SandboxResult:
        self.runs += 1
        return super().run(code)


@pytest.mark.asyncio
async def test_cached_inline_verdict_spawns_no_second_subprocess(tmp_path: Path) -> None:
    requirement = Requirement(
        id="r1", text="exits cleanly", inline_test="import sys\nsys.exit(0)\n"
    )
    spec = _spec(tmp_path, requirement, files=(_source(tmp_path),))
    sandbox = _CountingSandboxRunner()
    verifier = _verifier(sandbox=sandbox, cache=VerdictCache(tmp_path / "cache.db"))

    first = await verifier.evaluate(requirement, spec)
    second = await verifier.evaluate(requirement, spec)

    assert sandbox.runs == 1
    assert first.source is VerdictSource.SANDBOX
    assert second.source is VerdictSource.CACHE
    assert second.passed is True
    assert await verifier.verify(requirement, spec) is True
    assert sandbox.runs == 1


@pytest.mark.asyncio
async def test_failing_inline_test_reports_sandbox_detail(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works", inline_test="assert False\n")
    sandbox = _ScriptedSandbox(
        deque([SandboxResult(success=False, error="Test exited with status 1: AssertionError")])
    )

    passed = await _verifier(sandbox=sandbox).verify(requirement, _spec(tmp_path, requirement))
    verdict = await _verifier(
        sandbox=_ScriptedSandbox(deque([SandboxResult(success=False, timed_out=True)]))
    ).evaluate(requirement, _spec(tmp_path, requirement))

    assert passed is False
    assert verdict.passed is False
    assert verdict.reason == "Test execution failed."


@pytest.mark.asyncio
async def test_unchanged_requirement_is_answered_from_cache(tmp_path: Path) -> None:
    source = _source(tmp_path)
    requirement = Requirement(id="r1", text="add returns the sum")
    spec = _spec(tmp_path, requirement, files=(source,))
    reasoning = _CountingReasoning(deque(['{"passed": true, "reason": "Adds."}']))
    verifier = _verifier(reasoning=reasoning, cache=VerdictCache(tmp_path / "cache.db"))

    first = await verifier.evaluate(requirement, spec)
    second = await verifier.evaluate(requirement, spec)

    assert first == Verdict(True, "Adds.", VerdictSource.REASONING)
    assert second == Verdict(True, "Adds.", VerdictSource.CACHE)
    assert len(reasoning.calls) == 1
    [(text, contents)] = reasoning.calls
    assert text == "add returns the sum"
    assert contents[0].path == source.as_posix()
    assert contents[0].content is not None and "return a + b" in contents[0].content


@pytest.mark.asyncio
async def test_file_change_invalidates_cached_verdict(tmp_path: Path) -> None:
    source = _source(tmp_path)
    requirement = Requirement(id="r1", text="add returns the sum")
    spec = _spec(tmp_path, requirement, files=(source,))
    reasoning = _CountingReasoning(
        deque(['{"passed": true, "reason": "Adds."}', '{"passed": false, "reason": "Subtracts."}'])
    )
    verifier = _verifier(reasoning=reasoning, cache=VerdictCache(tmp_path / "cache.db"))

    await verifier.evaluate(requirement, spec)
    _source(tmp_path, "def add(a, b):\n    return a - b\n")
    verdict = await verifier.evaluate(requirement, spec)

    assert verdict == Verdict(False, "Subtracts.", VerdictSource.REASONING)
    assert len(reasoning.calls) == 2


@pytest.mark.asyncio
async def test_bypassing_cache_still_refreshes_it(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add returns the sum")
    spec = _spec(tmp_path, requirement)
    cache = _MemoryCache()
    reasoning = _CountingReasoning(deque(['{"passed": false}', '{"passed": true}']))
    verifier = _verifier(reasoning=reasoning, cache=cache)

    await verifier.evaluate(requirement, spec)
    verdict = await verifier.evaluate(requirement, spec, use_cache=False)

    assert verdict.passed is True
    assert len(reasoning.calls) == 2
    assert cache.gets == 1
    assert [item.passed for item in cache.rows.values()] == [True]


@pytest.mark.asyncio
async def test_confirmation_test_overrides_passing_reasoning(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works", inline_test="assert add(1, 1) == 2\n")
    sandbox = _ScriptedSandbox(
        deque([OSError("sandbox unavailable"), SandboxResult(success=False, error="boom")])
    )
    reasoning = _CountingReasoning(deque(['{"passed": true, "reason": "Looks right."}']))
    cache = _MemoryCache()

    verdict = await _verifier(sandbox=sandbox, reasoning=reasoning, cache=cache).evaluate(
        requirement, _spec(tmp_path, requirement)
    )

    assert verdict == Verdict(False, "Test failed: boom", VerdictSource.CONFIRMATION)
    assert len(sandbox.calls) == 2
    assert list(cache.rows.values()) == [verdict]


@pytest.mark.asyncio
async def test_missing_reasoning_service_fails_without_caching(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works")
    cache = _MemoryCache()

    verdict = await _verifier(cache=cache).evaluate(requirement, _spec(tmp_path, requirement))

    assert verdict == Verdict(False, NO_REASONING_SERVICE_REASON, VerdictSource.ERROR)
    assert cache.rows == {}


@pytest.mark.asyncio
async def test_provider_error_becomes_failed_verdict_and_is_not_cached(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works")
    cache = _MemoryCache()
    reasoning = _CountingReasoning(deque([ProviderRateLimitError("quota", provider="fake")]))
    pipeline = _RecordingPipeline()

    verdict = await _verifier(reasoning=reasoning, cache=cache, pipeline=pipeline).evaluate(
        requirement, _spec(tmp_path, requirement)
    )

    assert verdict == Verdict(False, REASONING_ERROR_REASON, VerdictSource.ERROR)
    assert cache.rows == {}
    assert pipeline.events[-1].type is EventType.COMPLETE
    assert pipeline.events[-1].result is False


@pytest.mark.asyncio
async def test_unparseable_response_fails_with_parse_reason(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works")
    cache = _MemoryCache()
    reasoning = _CountingReasoning(deque(["I cannot tell."]))

    verdict = await _verifier(reasoning=reasoning, cache=cache).evaluate(
        requirement, _spec(tmp_path, requirement)
    )

    assert verdict == Verdict(False, PARSE_FAILURE_REASON, VerdictSource.REASONING)
    assert list(cache.rows.values()) == [verdict]


@pytest.mark.asyncio
async def test_policy_rule_decides_before_any_other_strategy(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="Stays backwards compatible", inline_test="x\n")
    policy = VerificationPolicy.from_payload(
        {"rules": [{"spec": "calculator.md", "contains": "backwards", "passed": True}]}
    )
    sandbox = _ScriptedSandbox(deque())
    reasoning = _CountingReasoning(deque())
    cache = _MemoryCache()

    verdict = await _verifier(
        sandbox=sandbox, reasoning=reasoning, cache=cache, policy=policy
    ).evaluate(requirement, _spec(tmp_path, requirement))

    assert verdict.passed is True
    assert verdict.source is VerdictSource.POLICY
    assert sandbox.calls == []
    assert reasoning.calls == []
    assert cache.rows == {}


@pytest.mark.asyncio
async def test_prompt_version_is_part_of_key_when_enabled(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works")
    cache = _MemoryCache()
    reasoning = _CountingReasoning(deque(['{"passed": true}']))

    await _verifier(reasoning=reasoning, cache=cache, include_prompt_version=True).evaluate(
        requirement, _spec(tmp_path, requirement)
    )

    expected = compute_cache_key((), "add works", policy_version=prompt_version())
    assert list(cache.rows) == [expected]
    assert expected != compute_cache_key((), "add works")


@pytest.mark.asyncio
async def test_events_follow_start_progress_complete(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works")
    pipeline = _RecordingPipeline()
    reasoning = _CountingReasoning(deque(['{"passed": true, "reason": "ok"}']))

    await _verifier(reasoning=reasoning, cache=_MemoryCache(), pipeline=pipeline).evaluate(
        requirement, _spec(tmp_path, requirement)
    )

    types = [event.type for event in pipeline.events]
    assert types[0] is EventType.START
    assert pipeline.events[0].message == "add works"
    assert types[-1] is EventType.COMPLETE
    assert set(types[1:-1]) == {EventType.PROGRESS}
    progress = [event.progress for event in pipeline.events[1:-1]]
    assert progress == sorted(progress)
    assert pipeline.events[-1].result is True
    assert pipeline.events[-1].message == "ok"


@pytest.mark.asyncio
async def test_unexpected_fault_emits_error_event_and_fails(tmp_path: Path) -> None:
    requirement = Requirement(id="r1", text="add works")
    pipeline = _RecordingPipeline()

    verdict = await _verifier(
        reasoning=_CountingReasoning(deque()), cache=_ExplodingCache(), pipeline=pipeline
    ).evaluate(requirement, _spec(tmp_path, requirement))

    assert verdict.passed is False
    assert verdict.source is VerdictSource.ERROR
    assert verdict.reason == "Verification error: disk on fire"
    types = [event.type for event in pipeline.events]
    assert types[0] is EventType.START
    assert types[-1] is EventType.ERROR
    assert EventType.COMPLETE not in types


@pytest.mark.asyncio
async def test_concurrent_requirements_keep_publish_order(tmp_path: Path) -> None:
    req_a = Requirement(id="a", text="A")
    req_b = Requirement(id="b", text="B")
    spec = _spec(tmp_path, req_a, req_b)
    b_started = asyncio.Event()
    a_done = asyncio.Event()

    class _GatedReasoning:
        async def complete(self, requirement_text: str, file_contents: object) -> str:
            if requirement_text == "A":
                await b_started.wait()
                return '{"passed": true}'
            b_started.set()
            await a_done.wait()
            return '{"passed": false}'

    pipeline = EventPipeline()
    seen: list[VerificationEvent] = []
    pipeline.subscribe(seen.append)
    verifier = _verifier(reasoning=_GatedReasoning(), pipeline=pipeline)

    async def run_a() -> Verdict:
        verdict = await verifier.evaluate(req_a, spec)
        a_done.set()
        return verdict

    verdict_a, verdict_b = await asyncio.gather(run_a(), verifier.evaluate(req_b, spec))

    assert pipeline.wait_idle(timeout=5.0)
    assert (verdict_a.passed, verdict_b.passed) == (True, False)
    lifecycle = [
        (event.requirement_id, event.type)
        for event in seen
        if event.type in {EventType.START, EventType.COMPLETE}
    ]
    assert lifecycle == [
        ("a", EventType.START),
        ("b", EventType.START),
        ("a", EventType.COMPLETE),
        ("b", EventType.COMPLETE),
    ]


def test_read_file_contents_annotates_missing_files(tmp_path: Path) -> None:
    present = _source(tmp_path)

    contents = read_file_contents([present, tmp_path / "gone.py"])

    assert contents[0].content is not None
    assert contents[1] == FileContent(
        path=(tmp_path / "gone.py").as_posix(), content=None, error="not found"
    )
