"""Unit tests for runtime wiring from an effective config."""

from __future__ import annotations

from pathlib import Path

import pytest

from reqcheck.config.schema import default_config, merge_config
from reqcheck.runtime import build_cache, build_reasoning, build_runtime
from reqcheck.verification.policy import PolicyLoadError


def _config(tmp_path: Path, **sections: dict[str, object]) -> dict[str, object]:
    overlay: dict[str, object] = {
        "cache": {"path": (tmp_path / "cache.db").as_posix()},
        "paths": {"log_dir": (tmp_path / "logs").as_posix()},
        "reasoning": {"provider": "none"},
    }
    return merge_config(merge_config(default_config(), overlay), sections)


def test_build_runtime_wires_configured_components(tmp_path: Path) -> None:
    policy_path = tmp_path / "policy.yaml"
    policy_path.write_text('rules:\n  - spec: "*.md"\n    passed: true\n', encoding="utf-8")
    config = _config(
        tmp_path,
        sandbox={"timeout_seconds": 2.5},
        paths={"policy_file": policy_path.as_posix()},
    )

    runtime = build_runtime(config)

    assert runtime.sandbox.timeout_seconds == 2.5
    assert runtime.cache is not None
    assert runtime.cache.path == tmp_path / "cache.db"
    assert runtime.reasoning is None
    assert runtime.policy.version != build_runtime(_config(tmp_path)).policy.version
    assert runtime.run_log.path == tmp_path / "logs" / "run.log"


def test_disabled_cache_is_not_built(tmp_path: Path) -> None:
    runtime = build_runtime(_config(tmp_path, cache={"enabled": False}))

    assert runtime.cache is None


def test_explicit_reasoning_overrides_provider(tmp_path: Path) -> None:
    class _Reasoning:
        async def complete(self, requirement_text: str, file_contents: object) -> str:
            return "PASS"

    reasoning = _Reasoning()
    runtime = build_runtime(_config(tmp_path), reasoning=reasoning)  # type: ignore[arg-type]

    assert runtime.reasoning is reasoning


def test_zero_bounds_mean_unbounded_cache(tmp_path: Path) -> None:
    cache = build_cache(_config(tmp_path, cache={"max_entries": 0, "max_age_seconds": 0.0}))

    assert cache.max_entries is None
    assert cache.max_age_seconds is None
    assert build_reasoning(_config(tmp_path)) is None


def test_invalid_policy_file_raises(tmp_path: Path) -> None:
    policy_path = tmp_path / "policy.yaml"
    policy_path.write_text("rules: nope\n", encoding="utf-8")

    with pytest.raises(PolicyLoadError):
        build_runtime(_config(tmp_path, paths={"policy_file": policy_path.as_posix()}))
