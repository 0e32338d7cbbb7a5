"""
reqcheck — configuration schema and validation.

File: src/reqcheck/config/schema.py
Last updated: 2026-10-18

Purpose
- Define configuration defaults and strict validation rules.

Functional requirements
- Validate config payloads and return structured errors (field path + message).
- Reject unknown keys; reject embedded secrets in favour of ``*_env`` names.
- Provide deterministic deep-merge helpers for layered loading.
"""

from __future__ import annotations

import copy
import math
import re
import shlex
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, NotRequired, TypedDict

from reqcheck.constants import (
    CACHE_DB_FILENAME,
    CACHE_DIR,
    DEFAULT_SANDBOX_TIMEOUT_SECONDS,
    LOG_DIR,
)

SUPPORTED_PROVIDERS: Final[tuple[str, ...]] = ("anthropic", "openai", "none")
LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")

_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")
_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")

_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "api", "key", "apikey", "credential", "auth"}
)

# Config paths that are resolved relative to the config file location.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("cache", "path"),
    ("paths", "log_dir"),
    ("paths", "policy_file"),
)


class SandboxConfig(TypedDict):
    timeout_seconds: float
    interpreter: list[str]
    script_suffix: str
    inherit_env: bool


class CacheConfig(TypedDict):
    path: str
    enabled: bool
    max_entries: int
    max_age_seconds: float
    include_prompt_version: bool


class ReasoningConfig(TypedDict):
    provider: Literal["anthropic", "openai", "none"]
    max_tokens: int
    timeout_seconds: float
    max_retries: int
    model: NotRequired[str]
    api_key_env: NotRequired[str]


class PathsConfig(TypedDict):
    log_dir: str
    policy_file: NotRequired[str]


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_to_stdout: bool
    log_run: bool


class ReqcheckConfig(TypedDict):
    sandbox: SandboxConfig
    cache: CacheConfig
    reasoning: ReasoningConfig
    paths: PathsConfig
    observability: ObservabilityConfig


# ``max_entries`` / ``max_age_seconds`` of 0 mean unbounded; an empty interpreter
# list means the running Python interpreter.
DEFAULT_CONFIG: Final[ReqcheckConfig] = {
    "sandbox": {
        "timeout_seconds": DEFAULT_SANDBOX_TIMEOUT_SECONDS,
        "interpreter": [],
        "script_suffix": ".py",
        "inherit_env": False,
    },
    "cache": {
        "path": (CACHE_DIR / CACHE_DB_FILENAME).as_posix(),
        "enabled": True,
        "max_entries": 0,
        "max_age_seconds": 0.0,
        "include_prompt_version": False,
    },
    "reasoning": {
        "provider": "anthropic",
        "max_tokens": 1024,
        "timeout_seconds": 60.0,
        "max_retries": 2,
    },
    "paths": {
        "log_dir": LOG_DIR.as_posix(),
    },
    "observability": {
        "log_level": "INFO",
        "log_to_stdout": True,
        "log_run": True,
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when strict config validation fails."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        if not self.issues:
            rendered = "unknown validation failure"
        else:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
        super().__init__(f"invalid config:\n{rendered}")


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def default_config() -> ReqcheckConfig:
    """Return a deep copy of the built-in defaults."""

    return copy.deepcopy(DEFAULT_CONFIG)


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deterministically deep-merge ``overlay`` onto ``base``."""

    merged = _deep_copy_mapping(base)
    _merge_into(merged, overlay)
    return merged


def validate_config(
    config: Mapping[str, object] | object,
) -> tuple[dict[str, Any] | None, tuple[ConfigValidationIssue, ...]]:
    """Return ``(normalized, issues)``; ``normalized`` is None when any issue was found."""

    issues = _IssueCollector()
    root = _as_object(config, "<root>", issues)
    if root is None:
        return None, issues.items()

    validators = {
        "sandbox": _validate_sandbox,
        "cache": _validate_cache,
        "reasoning": _validate_reasoning,
        "paths": _validate_paths,
        "observability": _validate_observability,
    }
    _reject_unknown_keys(root, set(validators), "", issues)

    normalized: dict[str, Any] = {}
    for name in sorted(validators):
        if name not in root:
            issues.add(name, "missing required section")
            continue
        section = _as_object(root[name], name, issues)
        if section is None:
            continue
        normalized[name] = validators[name](section, name, issues)

    if issues.has_issues:
        return None, issues.items()
    return normalized, ()


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Validate config and raise ``ConfigValidationError`` on failure."""

    normalized, issues = validate_config(config)
    if normalized is None:
        raise ConfigValidationError(issues)
    return normalized


def _validate_sandbox(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"timeout_seconds", "interpreter", "script_suffix", "inherit_env"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "timeout_seconds" in payload:
        timeout = _as_float(
            payload["timeout_seconds"], _join(path, "timeout_seconds"), issues, minimum=0.001
        )
        if timeout is not None:
            out["timeout_seconds"] = timeout
    if "interpreter" in payload:
        interpreter = _as_command(payload["interpreter"], _join(path, "interpreter"), issues)
        if interpreter is not None:
            out["interpreter"] = interpreter
    if "script_suffix" in payload:
        suffix = _as_str(payload["script_suffix"], _join(path, "script_suffix"), issues)
        if suffix is not None:
            if not suffix.startswith(".") or len(suffix) < 2 or "/" in suffix:
                issues.add(_join(path, "script_suffix"), "must look like '.py' or '.js'")
            else:
                out["script_suffix"] = suffix
    if "inherit_env" in payload:
        inherit = _as_bool(payload["inherit_env"], _join(path, "inherit_env"), issues)
        if inherit is not None:
            out["inherit_env"] = inherit
    return out


def _validate_cache(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"path", "enabled", "max_entries", "max_age_seconds", "include_prompt_version"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "path" in payload:
        parsed_path = _as_path_text(payload["path"], _join(path, "path"), issues)
        if parsed_path is not None:
            out["path"] = parsed_path
    for key in ("enabled", "include_prompt_version"):
        if key in payload:
            parsed_flag = _as_bool(payload[key], _join(path, key), issues)
            if parsed_flag is not None:
                out[key] = parsed_flag
    if "max_entries" in payload:
        parsed_entries = _as_int(
            payload["max_entries"], _join(path, "max_entries"), issues, minimum=0
        )
        if parsed_entries is not None:
            out["max_entries"] = parsed_entries
    if "max_age_seconds" in payload:
        parsed_age = _as_float(
            payload["max_age_seconds"], _join(path, "max_age_seconds"), issues, minimum=0.0
        )
        if parsed_age is not None:
            out["max_age_seconds"] = parsed_age
    return out


def _validate_reasoning(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    required = {"provider", "max_tokens", "timeout_seconds", "max_retries"}
    allowed = required | {"model", "api_key_env"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, required, path, issues)

    out: dict[str, Any] = {}
    if "provider" in payload:
        provider = _as_enum(
            payload["provider"], _join(path, "provider"), issues, allowed_values=SUPPORTED_PROVIDERS
        )
        if provider is not None:
            out["provider"] = provider
    if "model" in payload:
        model = _as_str(payload["model"], _join(path, "model"), issues)
        if model is not None:
            out["model"] = model
    if "api_key_env" in payload:
        env_name = _as_env_name(payload["api_key_env"], _join(path, "api_key_env"), issues)
        if env_name is not None:
            out["api_key_env"] = env_name
    if "max_tokens" in payload:
        max_tokens = _as_int(
            payload["max_tokens"], _join(path, "max_tokens"), issues, minimum=1
        )
        if max_tokens is not None:
            out["max_tokens"] = max_tokens
    if "timeout_seconds" in payload:
        timeout = _as_float(
            payload["timeout_seconds"], _join(path, "timeout_seconds"), issues, minimum=0.001
        )
        if timeout is not None:
            out["timeout_seconds"] = timeout
    if "max_retries" in payload:
        retries = _as_int(
            payload["max_retries"], _join(path, "max_retries"), issues, minimum=0
        )
        if retries is not None:
            out["max_retries"] = retries
    return out


def _validate_paths(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_dir", "policy_file"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, {"log_dir"}, path, issues)

    out: dict[str, Any] = {}
    for key in sorted(allowed):
        if key in payload:
            parsed = _as_path_text(payload[key], _join(path, key), issues)
            if parsed is not None:
                out[key] = parsed
    return out


def _validate_observability(
    payload: Mapping[str, object], path: str, issues: _IssueCollector
) -> dict[str, Any]:
    allowed = {"log_level", "log_to_stdout", "log_run"}
    _reject_unknown_keys(payload, allowed, path, issues)
    _require_keys(payload, allowed, path, issues)

    out: dict[str, Any] = {}
    if "log_level" in payload:
        raw_level = payload["log_level"]
        if isinstance(raw_level, str):
            raw_level = raw_level.strip().upper()
        level = _as_enum(raw_level, _join(path, "log_level"), issues, allowed_values=LOG_LEVELS)
        if level is not None:
            out["log_level"] = level
    for key in ("log_to_stdout", "log_run"):
        if key in payload:
            parsed_flag = _as_bool(payload[key], _join(path, key), issues)
            if parsed_flag is not None:
                out[key] = parsed_flag
    return out


def _as_object(value: object, path: str, issues: _IssueCollector) -> dict[str, object] | None:
    if not isinstance(value, Mapping):
        issues.add(path, f"expected object, got {type(value).__name__}")
        return None
    out: dict[str, object] = {}
    for key, item in value.items():
        if not isinstance(key, str):
            issues.add(path, f"object key must be string, got {type(key).__name__}")
            continue
        out[key] = item
    return out


def _as_str(value: object, path: str, issues: _IssueCollector) -> str | None:
    if not isinstance(value, str):
        issues.add(path, f"expected string, got {type(value).__name__}")
        return None
    parsed = value.strip()
    if not parsed:
        issues.add(path, "must not be empty")
        return None
    return parsed


def _as_path_text(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if "\x00" in parsed:
        issues.add(path, "must not contain NUL bytes")
        return None
    return parsed


def _as_env_name(value: object, path: str, issues: _IssueCollector) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if not _ENV_NAME_PATTERN.fullmatch(parsed):
        issues.add(path, "must be an env var name (example: ANTHROPIC_API_KEY)")
        return None
    return parsed


def _as_command(value: object, path: str, issues: _IssueCollector) -> list[str] | None:
    if isinstance(value, str):
        try:
            return shlex.split(value)
        except ValueError as exc:
            issues.add(path, f"cannot split command: {exc}")
            return None
    if not isinstance(value, list):
        issues.add(path, f"expected list of strings, got {type(value).__name__}")
        return None
    parts: list[str] = []
    for index, item in enumerate(value):
        parsed = _as_str(item, f"{path}[{index}]", issues)
        if parsed is None:
            return None
        parts.append(parsed)
    return parts


def _as_bool(value: object, path: str, issues: _IssueCollector) -> bool | None:
    if isinstance(value, bool):
        return value
    issues.add(path, f"expected boolean, got {type(value).__name__}")
    return None


def _as_int(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: int | None = None,
) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int):
        issues.add(path, f"expected integer, got {type(value).__name__}")
        return None
    if minimum is not None and value < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return value


def _as_float(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    minimum: float | None = None,
) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        issues.add(path, f"expected number, got {type(value).__name__}")
        return None
    parsed = float(value)
    if not math.isfinite(parsed):
        issues.add(path, "must be finite")
        return None
    if minimum is not None and parsed < minimum:
        issues.add(path, f"must be >= {minimum}")
        return None
    return parsed


def _as_enum(
    value: object,
    path: str,
    issues: _IssueCollector,
    *,
    allowed_values: tuple[str, ...],
) -> str | None:
    parsed = _as_str(value, path, issues)
    if parsed is None:
        return None
    if parsed not in allowed_values:
        expected = ", ".join(sorted(allowed_values))
        issues.add(path, f"invalid value {parsed!r}; expected one of: {expected}")
        return None
    return parsed


def _reject_unknown_keys(
    payload: Mapping[str, object],
    allowed: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(payload):
        if key in allowed:
            continue
        key_path = _join(path, key)
        if _looks_sensitive_key(key):
            issues.add(
                key_path,
                "embedded secret values are forbidden; use an *_env key with an env var name",
            )
        else:
            issues.add(key_path, "unknown field")


def _require_keys(
    payload: Mapping[str, object],
    required: set[str],
    path: str,
    issues: _IssueCollector,
) -> None:
    for key in sorted(required):
        if key not in payload:
            issues.add(_join(path, key), "missing required field")


def _looks_sensitive_key(key: str) -> bool:
    normalized = _normalize_key(key)
    if normalized.endswith("_env"):
        return False
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


def _normalize_key(key: str) -> str:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    return _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


def _merge_into(target: dict[str, Any], overlay: Mapping[str, object]) -> None:
    for key in sorted(overlay):
        value = overlay[key]
        if isinstance(value, Mapping):
            existing = target.get(key)
            if isinstance(existing, dict):
                _merge_into(existing, value)
            else:
                nested: dict[str, Any] = {}
                _merge_into(nested, value)
                target[key] = nested
        else:
            target[key] = copy.deepcopy(value)


def _deep_copy_mapping(value: Mapping[str, object]) -> dict[str, Any]:
    return {key: copy.deepcopy(value[key]) for key in sorted(value)}


__all__ = [
    "DEFAULT_CONFIG",
    "LOG_LEVELS",
    "PATH_FIELDS",
    "SUPPORTED_PROVIDERS",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ReqcheckConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "validate_config",
]
