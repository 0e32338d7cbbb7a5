"""
reqcheck — Anthropic reasoning service

File: src/reqcheck/reasoning/anthropic_adapter.py
Last updated: 2026-10-18

Purpose
- Ask an Anthropic messages model whether code satisfies a requirement.

Functional requirements
- SDK is an optional dependency loaded on first use; an injected client skips it.
- Retryable failures are retried with bounded backoff.

Non-functional requirements
- No secrets in logs or error text.
"""

from __future__ import annotations

import asyncio
import importlib
import os
import random as random_module
from collections.abc import Sequence
from typing import TYPE_CHECKING, Final, Protocol, cast

import structlog

from reqcheck.reasoning.base import (
    BackoffConfig,
    ProviderAuthenticationError,
    ProviderError,
    ProviderResponseError,
    ProviderUnavailableError,
    RandomFn,
    SleepFn,
    map_sdk_exception,
    read_sequence,
    read_str,
    run_with_retries,
)
from reqcheck.reasoning.prompts import DEFAULT_PROMPT, VerificationPrompt

if TYPE_CHECKING:
    from reqcheck.domain.models import FileContent

DEFAULT_ANTHROPIC_MODEL: Final[str] = "claude-sonnet-4-5"
DEFAULT_MAX_TOKENS: Final[int] = 1024


class _AnthropicMessagesAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _AnthropicClient(Protocol):
    messages: _AnthropicMessagesAPI


class AnthropicReasoningService:
    """Anthropic messages adapter with optional SDK dependency and injected client support."""

    provider_name = "anthropic"

    def __init__(
        self,
        *,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        api_key: str | None = None,
        api_key_env: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        timeout_seconds: float | None = None,
        client: _AnthropicClient | None = None,
        prompt: VerificationPrompt = DEFAULT_PROMPT,
        backoff: BackoffConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
        random_fn: RandomFn = random_module.random,
    ) -> None:
        if not model.strip():
            raise ValueError("model cannot be empty")
        if max_tokens <= 0:
            raise ValueError("max_tokens must be > 0")
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")
        self.model = model.strip()
        self._api_key = api_key
        self._api_key_env = api_key_env
        self._max_tokens = max_tokens
        self._timeout_seconds = timeout_seconds
        self._client = client
        self._prompt = prompt
        self._backoff = backoff if backoff is not None else BackoffConfig()
        self._sleep = sleep
        self._random_fn = random_fn
        self._logger = structlog.get_logger(__name__)

    @property
    def prompt_version(self) -> str:
        return self._prompt.version

    async def complete(
        self,
        requirement_text: str,
        file_contents: Sequence[FileContent],
    ) -> str:
        rendered = self._prompt.render(requirement_text, file_contents)
        payload: dict[str, object] = {
            "model": self.model,
            "system": rendered.system,
            "messages": [{"role": "user", "content": rendered.user}],
            "max_tokens": self._max_tokens,
        }

        async def operation() -> str:
            client = self._ensure_client()
            raw_response = await client.messages.create(**payload)
            return _extract_text(raw_response)

        return await run_with_retries(
            operation,
            map_exception=self._map_exception,
            backoff=self._backoff,
            sleep=self._sleep,
            random_fn=self._random_fn,
            on_retry=self._log_retry,
        )

    def _ensure_client(self) -> _AnthropicClient:
        if self._client is not None:
            return self._client
        self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _AnthropicClient:
        try:
            anthropic_module = importlib.import_module("anthropic")
        except ImportError as exc:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="anthropic SDK is not installed",
            ) from exc

        async_anthropic = getattr(anthropic_module, "AsyncAnthropic", None)
        if async_anthropic is None:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="anthropic SDK does not expose AsyncAnthropic",
            )

        init_kwargs: dict[str, object] = {"api_key": self._resolve_api_key()}
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        return cast("_AnthropicClient", async_anthropic(**init_kwargs))

    def _resolve_api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key

        if self._api_key_env is not None:
            configured = os.getenv(self._api_key_env)
            if configured is None or not configured.strip():
                raise ProviderAuthenticationError(
                    provider=self.provider_name,
                    detail=f"missing Anthropic API key in configured env var {self._api_key_env}",
                    http_status=401,
                )
            return configured

        fallback_key = os.getenv("ANTHROPIC_API_KEY") or os.getenv("REQCHECK_ANTHROPIC_API_KEY")
        if fallback_key is None or not fallback_key.strip():
            raise ProviderAuthenticationError(
                provider=self.provider_name,
                detail=(
                    "missing Anthropic API key; "
                    "set ANTHROPIC_API_KEY or REQCHECK_ANTHROPIC_API_KEY"
                ),
                http_status=401,
            )
        return fallback_key

    def _map_exception(self, exc: Exception) -> ProviderError:
        return map_sdk_exception(exc, provider=self.provider_name)

    def _log_retry(self, attempt: int, error: ProviderError, delay_seconds: float) -> None:
        self._logger.warning(
            "reasoning_retry",
            provider=self.provider_name,
            attempt=attempt,
            code=error.code,
            delay_seconds=delay_seconds,
        )


def _extract_text(raw_response: object) -> str:
    chunks: list[str] = []
    for item in read_sequence(raw_response, "content"):
        if (read_str(item, "type") or "").lower() != "text":
            continue
        text_value = read_str(item, "text")
        if text_value:
            chunks.append(text_value)
    combined = "\n".join(chunks)
    if not combined.strip():
        raise ProviderResponseError(
            provider=AnthropicReasoningService.provider_name,
            detail="response does not contain text",
        )
    return combined


__all__ = ["DEFAULT_ANTHROPIC_MODEL", "AnthropicReasoningService"]
