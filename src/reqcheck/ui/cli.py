"""Command-line interface router for reqcheck."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from reqcheck.config import ConfigLoadError, ConfigValidationError, load_config
from reqcheck.observability.logging import (
    LoggingConfig,
    configure_event_logging,
    setup_structured_logging,
    shutdown_logging,
)
from reqcheck.reasoning.prompts import prompt_version
from reqcheck.runs.run_log import RunLog
from reqcheck.runs.runner import SpecRunner, SpecRunResult
from reqcheck.runtime import build_cache, build_runtime
from reqcheck.sandbox.runner import SandboxError
from reqcheck.specs.mutator import SpecMutator
from reqcheck.specs.parser import SpecParseError, load_spec
from reqcheck.ui.render import CLIRenderer, create_renderer
from reqcheck.utils.hashing import compute_cache_key
from reqcheck.verification.policy import PolicyLoadError


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reqcheck",
        description=(
            "reqcheck — verify natural-language requirements against source code.\n\n"
            "Common workflows:\n"
            "  reqcheck run specs/login.md     Verify every unchecked requirement\n"
            "  reqcheck reset specs/login.md   Uncheck every requirement\n"
            "  reqcheck status                 Show the latest recorded run per spec\n"
            "  reqcheck cache stats            Show verdict cache size\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to reqcheck TOML config (default: ./reqcheck.toml if present).",
    )
    common.add_argument("--verbose", "-v", action="store_true", default=False)
    common.add_argument("--no-color", action="store_true", default=False)
    common.add_argument(
        "--json", action="store_true", default=False, help="Emit a JSON summary instead of text."
    )

    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run", parents=[common], help="Verify the requirements of one or more specs."
    )
    run_parser.add_argument("specs", nargs="+", help="Spec files (.md, .yaml, .yml).")
    run_parser.add_argument(
        "--no-cache",
        action="store_true",
        default=False,
        help="Skip cache lookups; verdicts are still written.",
    )
    run_parser.add_argument(
        "--reset-on-success",
        action="store_true",
        default=False,
        help="Uncheck every requirement once a spec fully passes.",
    )
    run_parser.add_argument("--max-concurrency", type=int, default=None)
    run_parser.add_argument("--timeout", type=float, default=None, help="Sandbox timeout seconds.")
    run_parser.add_argument(
        "--provider", choices=("anthropic", "openai", "none"), default=None
    )
    run_parser.add_argument("--model", default=None)
    run_parser.set_defaults(handler=_cmd_run)

    reset_parser = subparsers.add_parser(
        "reset", parents=[common], help="Mark every requirement of the given specs unchecked."
    )
    reset_parser.add_argument("specs", nargs="+")
    reset_parser.set_defaults(handler=_cmd_reset)

    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Show the latest run log entry of every spec."
    )
    status_parser.set_defaults(handler=_cmd_status)

    cache_parser = subparsers.add_parser("cache", help="Inspect the verdict cache.")
    cache_sub = cache_parser.add_subparsers(dest="cache_command")
    stats_parser = cache_sub.add_parser(
        "stats", parents=[common], help="Show cache location and size."
    )
    stats_parser.set_defaults(handler=_cmd_cache_stats)
    clear_parser = cache_sub.add_parser(
        "clear", parents=[common], help="Delete every cached verdict."
    )
    clear_parser.set_defaults(handler=_cmd_cache_clear)
    prune_parser = cache_sub.add_parser(
        "prune",
        parents=[common],
        help="Keep only verdicts that belong to the requirements of the given specs.",
    )
    prune_parser.add_argument("specs", nargs="+")
    prune_parser.set_defaults(handler=_cmd_cache_prune)

    return parser


# ---------------------------------------------------------------------------
# Entrypoints
# ---------------------------------------------------------------------------


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {
        "sandbox.timeout_seconds": args.timeout,
        "reasoning.provider": args.provider,
        "reasoning.model": args.model,
    }
    config = _load_effective_config(args, overrides)
    spec_paths = [_resolve_spec_path(raw) for raw in args.specs]
    if args.max_concurrency is not None and args.max_concurrency <= 0:
        raise CLIError("--max-concurrency must be > 0", exit_code=2)

    observability = config["observability"]
    handle = setup_structured_logging(
        LoggingConfig(
            run_id=datetime.now(tz=UTC).strftime("run-%Y%m%dT%H%M%SZ"),
            level=observability["log_level"],
            log_to_stderr=True,
        )
    )
    configure_event_logging(
        level=observability["log_level"],
        stream=sys.stdout if observability["log_to_stdout"] and not args.json else sys.stderr,
    )
    try:
        try:
            runtime = build_runtime(
                config,
                use_cache=not args.no_cache,
                max_concurrency=args.max_concurrency,
            )
        except (PolicyLoadError, SandboxError, ValueError) as exc:
            raise CLIError(str(exc), exit_code=2) from exc

        results = asyncio.run(_run_specs(runtime.runner, spec_paths, args.reset_on_success))
    finally:
        shutdown_logging(handle)

    all_passed = all(result.success for result in results)
    if args.json:
        _emit_json(
            {
                "command": "run",
                "success": all_passed,
                "specs": [_result_payload(result) for result in results],
            }
        )
        return 0 if all_passed else 1

    renderer = _get_renderer(args)
    for result in results:
        _render_result(renderer, result)
    return 0 if all_passed else 1


async def _run_specs(
    runner: SpecRunner, spec_paths: Sequence[Path], reset_on_success: bool
) -> list[SpecRunResult]:
    results: list[SpecRunResult] = []
    for spec_path in spec_paths:
        try:
            results.append(await runner.run_spec(spec_path, reset_on_success=reset_on_success))
        except SpecParseError as exc:
            raise CLIError(str(exc), exit_code=2) from exc
    return results


def _cmd_reset(args: argparse.Namespace) -> int:
    mutator = SpecMutator()
    changed: dict[str, int] = {}
    for raw in args.specs:
        spec_path = _resolve_spec_path(raw)
        changed[spec_path.as_posix()] = mutator.reset(spec_path)

    if args.json:
        _emit_json({"command": "reset", "changed": changed})
        return 0
    renderer = _get_renderer(args)
    for path, count in changed.items():
        renderer.kv(path, f"{count} requirement(s) unchecked")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    entries = sorted(
        RunLog(Path(config["paths"]["log_dir"])).latest().values(), key=lambda item: item.spec
    )
    specs = [
        {
            "spec": entry.spec,
            "success": entry.success,
            "passed": entry.passed,
            "total": entry.total,
            "timestamp": entry.to_dict()["timestamp"],
        }
        for entry in entries
    ]
    if args.json:
        _emit_json({"command": "status", "specs": specs})
        return 0

    renderer = _get_renderer(args)
    if not specs:
        renderer.text("No runs recorded.")
        return 0
    for entry, item in zip(entries, specs, strict=True):
        renderer.kv(entry.spec, f"{entry.passed}/{entry.total} passed ({item['timestamp']})")
    return 0


def _cmd_cache_stats(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    cache = build_cache(config)
    payload = {
        "command": "cache stats",
        "path": cache.path.as_posix(),
        "enabled": config["cache"]["enabled"],
        "entries": cache.count(),
    }
    if args.json:
        _emit_json(payload)
        return 0
    renderer = _get_renderer(args)
    renderer.kv("Cache", payload["path"])
    renderer.kv("Enabled", str(payload["enabled"]).lower())
    renderer.kv("Entries", payload["entries"])
    return 0


def _cmd_cache_clear(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    removed = build_cache(config).clear()
    if args.json:
        _emit_json({"command": "cache clear", "removed": removed})
        return 0
    _get_renderer(args).kv("Removed", removed)
    return 0


def _cmd_cache_prune(args: argparse.Namespace) -> int:
    config = _load_effective_config(args)
    version = prompt_version() if config["cache"]["include_prompt_version"] else None
    valid_keys: set[str] = set()
    for raw in args.specs:
        spec_path = _resolve_spec_path(raw)
        try:
            spec = load_spec(spec_path)
        except SpecParseError as exc:
            raise CLIError(str(exc), exit_code=2) from exc
        for requirement in spec.requirements:
            valid_keys.add(compute_cache_key(spec.files, requirement.text, policy_version=version))

    removed = build_cache(config).prune(valid_keys)
    if args.json:
        _emit_json({"command": "cache prune", "kept_keys": len(valid_keys), "removed": removed})
        return 0
    _get_renderer(args).kv("Removed", removed)
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(
        no_color=bool(getattr(args, "no_color", False)),
        verbose=bool(getattr(args, "verbose", False)),
    )


def _load_effective_config(
    args: argparse.Namespace,
    overrides: Mapping[str, object] | None = None,
) -> dict[str, Any]:
    try:
        return load_config(getattr(args, "config_path", None), cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _resolve_spec_path(raw: str) -> Path:
    candidate = Path(raw).expanduser()
    if not candidate.is_file():
        raise CLIError(f"spec not found: {raw}", exit_code=2)
    return candidate


def _result_payload(result: SpecRunResult) -> dict[str, object]:
    return {
        "spec": result.spec.path.as_posix() if result.spec.path is not None else result.spec.title,
        "success": result.success,
        "total": result.total,
        "passed": result.passed,
        "reset": result.reset_count,
        "requirements": [
            {
                "id": outcome.requirement.id,
                "text": outcome.requirement.text,
                "passed": outcome.passed,
                "skipped": outcome.skipped,
                "reason": outcome.verdict.reason if outcome.verdict is not None else None,
                "source": outcome.verdict.source.value if outcome.verdict is not None else None,
            }
            for outcome in result.outcomes
        ],
    }


def _render_result(renderer: CLIRenderer, result: SpecRunResult) -> None:
    label = result.spec.path.name if result.spec.path is not None else result.spec.title
    renderer.section(f"{label}: {result.spec.title}")
    for outcome in result.outcomes:
        if outcome.skipped:
            renderer.skipped(outcome.requirement.text)
        elif outcome.passed:
            renderer.ok(outcome.requirement.text)
        else:
            reason = outcome.verdict.reason if outcome.verdict is not None else None
            renderer.fail(outcome.requirement.text, reason)
    renderer.kv("Results", f"{result.passed}/{result.total} requirements passed")
    if not result.drained:
        renderer.warning("status updates were still pending when the run finished")
    if result.reset_count:
        renderer.text(f"All requirements passed; reset {result.reset_count} for the next run.")


__all__ = ["CLIError", "build_parser", "run_cli"]
