"""Construct a reasoning service from configuration values."""

from __future__ import annotations

from typing import Final

from reqcheck.reasoning.anthropic_adapter import AnthropicReasoningService
from reqcheck.reasoning.base import BackoffConfig, ReasoningService
from reqcheck.reasoning.openai_adapter import OpenAIReasoningService

SUPPORTED_PROVIDERS: Final[tuple[str, ...]] = ("anthropic", "openai")


def build_reasoning_service(
    provider: str,
    *,
    model: str | None = None,
    api_key_env: str | None = None,
    max_tokens: int = 1024,
    timeout_seconds: float | None = None,
    max_retries: int = 2,
) -> ReasoningService:
    """Return a lazily-connecting service; no SDK import or key lookup happens here."""

    normalized = provider.strip().lower()
    backoff = BackoffConfig(max_retries=max_retries)
    options: dict[str, object] = {
        "api_key_env": api_key_env,
        "max_tokens": max_tokens,
        "timeout_seconds": timeout_seconds,
        "backoff": backoff,
    }
    if model:
        options["model"] = model
    if normalized == "anthropic":
        return AnthropicReasoningService(**options)  # type: ignore[arg-type]
    if normalized == "openai":
        return OpenAIReasoningService(**options)  # type: ignore[arg-type]
    allowed = ", ".join(SUPPORTED_PROVIDERS)
    raise ValueError(f"unsupported reasoning provider {provider!r}; expected one of: {allowed}")


__all__ = ["SUPPORTED_PROVIDERS", "build_reasoning_service"]
