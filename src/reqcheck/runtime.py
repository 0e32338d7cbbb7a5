"""
reqcheck — runtime assembly

File: src/reqcheck/runtime.py
Last updated: 2026-10-18

Purpose
- Assemble verification components from an effective config mapping.

Functional requirements
- Cache bounds of 0 mean unbounded; provider ``none`` means no reasoning service.
- An invalid policy file raises ``PolicyLoadError`` at assembly time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from reqcheck.cache.store import VerdictCache
from reqcheck.events.pipeline import EventPipeline
from reqcheck.reasoning.base import ReasoningService
from reqcheck.reasoning.factory import build_reasoning_service
from reqcheck.runs.run_log import RunLog
from reqcheck.runs.runner import SpecRunner
from reqcheck.sandbox.runner import SandboxRunner
from reqcheck.specs.mutator import SpecMutator
from reqcheck.verification.orchestrator import RequirementVerifier
from reqcheck.verification.policy import VerificationPolicy


@dataclass(frozen=True, slots=True)
class Runtime:
    sandbox: SandboxRunner
    cache: VerdictCache | None
    reasoning: ReasoningService | None
    policy: VerificationPolicy
    mutator: SpecMutator
    pipeline: EventPipeline
    verifier: RequirementVerifier
    runner: SpecRunner
    run_log: RunLog


def build_runtime(
    config: Mapping[str, Any],
    *,
    use_cache: bool = True,
    max_concurrency: int | None = None,
    reasoning: ReasoningService | None = None,
) -> Runtime:
    """Wire a ``SpecRunner`` and its collaborators from validated config.

    ``reasoning`` replaces the configured provider when given. Raises
    ``PolicyLoadError`` when the configured policy file is invalid.
    """

    sandbox_cfg = config["sandbox"]
    cache_cfg = config["cache"]
    paths_cfg = config["paths"]

    sandbox = SandboxRunner(
        timeout_seconds=sandbox_cfg["timeout_seconds"],
        interpreter=sandbox_cfg["interpreter"] or None,
        script_suffix=sandbox_cfg["script_suffix"],
        inherit_env=sandbox_cfg["inherit_env"],
    )
    cache = build_cache(config) if cache_cfg["enabled"] else None

    if reasoning is None:
        reasoning = build_reasoning(config)

    policy_file = paths_cfg.get("policy_file")
    policy = VerificationPolicy.load(policy_file) if policy_file else VerificationPolicy.empty()

    mutator = SpecMutator()
    pipeline = EventPipeline(status_writer=mutator)
    verifier = RequirementVerifier(
        sandbox=sandbox,
        cache=cache,
        reasoning=reasoning,
        pipeline=pipeline,
        policy=policy,
        include_prompt_version=cache_cfg["include_prompt_version"],
    )
    run_log = RunLog(Path(paths_cfg["log_dir"]))
    runner = SpecRunner(
        verifier=verifier,
        pipeline=pipeline,
        mutator=mutator,
        run_log=run_log if config["observability"]["log_run"] else None,
        max_concurrency=max_concurrency,
        use_cache=use_cache,
    )
    return Runtime(
        sandbox=sandbox,
        cache=cache,
        reasoning=reasoning,
        policy=policy,
        mutator=mutator,
        pipeline=pipeline,
        verifier=verifier,
        runner=runner,
        run_log=run_log,
    )


def build_cache(config: Mapping[str, Any]) -> VerdictCache:
    cache_cfg = config["cache"]
    return VerdictCache(
        cache_cfg["path"],
        max_entries=cache_cfg["max_entries"] or None,
        max_age_seconds=cache_cfg["max_age_seconds"] or None,
    )


def build_reasoning(config: Mapping[str, Any]) -> ReasoningService | None:
    reasoning_cfg = config["reasoning"]
    if reasoning_cfg["provider"] == "none":
        return None
    return build_reasoning_service(
        reasoning_cfg["provider"],
        model=reasoning_cfg.get("model"),
        api_key_env=reasoning_cfg.get("api_key_env"),
        max_tokens=reasoning_cfg["max_tokens"],
        timeout_seconds=reasoning_cfg["timeout_seconds"],
        max_retries=reasoning_cfg["max_retries"],
    )


__all__ = ["Runtime", "build_cache", "build_reasoning", "build_runtime"]
