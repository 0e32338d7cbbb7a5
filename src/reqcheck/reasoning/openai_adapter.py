"""OpenAI Responses API reasoning service."""

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

DEFAULT_OPENAI_MODEL: Final[str] = "gpt-4.1-mini"
DEFAULT_MAX_OUTPUT_TOKENS: Final[int] = 1024


class _OpenAIResponsesAPI(Protocol):
    async def create(self, **kwargs: object) -> object: ...


class _OpenAIClient(Protocol):
    responses: _OpenAIResponsesAPI


class OpenAIReasoningService:
    """OpenAI adapter; the system prompt travels as ``instructions``."""

    provider_name = "openai"

    def __init__(
        self,
        *,
        model: str = DEFAULT_OPENAI_MODEL,
        api_key: str | None = None,
        api_key_env: str | None = None,
        max_tokens: int = DEFAULT_MAX_OUTPUT_TOKENS,
        timeout_seconds: float | None = None,
        client: _OpenAIClient | None = None,
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
            "instructions": rendered.system,
            "input": rendered.user,
            "max_output_tokens": self._max_tokens,
        }

        async def operation() -> str:
            client = self._ensure_client()
            raw_response = await client.responses.create(**payload)
            return _extract_text(raw_response)

        return await run_with_retries(
            operation,
            map_exception=self._map_exception,
            backoff=self._backoff,
            sleep=self._sleep,
            random_fn=self._random_fn,
            on_retry=self._log_retry,
        )

    def _ensure_client(self) -> _OpenAIClient:
        if self._client is not None:
            return self._client
        self._client = self._create_default_client()
        return self._client

    def _create_default_client(self) -> _OpenAIClient:
        try:
            openai_module = importlib.import_module("openai")
        except ImportError as exc:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai SDK is not installed",
            ) from exc

        async_openai = getattr(openai_module, "AsyncOpenAI", None)
        if async_openai is None:
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai SDK does not expose AsyncOpenAI",
            )

        init_kwargs: dict[str, object] = {"api_key": self._resolve_api_key()}
        if self._timeout_seconds is not None:
            init_kwargs["timeout"] = self._timeout_seconds
        client = async_openai(**init_kwargs)
        if not hasattr(client, "responses"):
            raise ProviderUnavailableError(
                provider=self.provider_name,
                detail="openai client missing responses API",
            )
        return cast("_OpenAIClient", client)

    def _resolve_api_key(self) -> str:
        if self._api_key is not None:
            return self._api_key

        if self._api_key_env is not None:
            configured = os.getenv(self._api_key_env)
            if configured is None or not configured.strip():
                raise ProviderAuthenticationError(
                    provider=self.provider_name,
                    detail=f"missing OpenAI API key in configured env var {self._api_key_env}",
                    http_status=401,
                )
            return configured

        fallback_key = os.getenv("OPENAI_API_KEY") or os.getenv("REQCHECK_OPENAI_API_KEY")
        if fallback_key is None or not fallback_key.strip():
            raise ProviderAuthenticationError(
                provider=self.provider_name,
                detail="missing OpenAI API key; set OPENAI_API_KEY or REQCHECK_OPENAI_API_KEY",
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
    direct_output = read_str(raw_response, "output_text")
    if direct_output is not None:
        return direct_output

    chunks: list[str] = []
    for item in read_sequence(raw_response, "output"):
        for content in read_sequence(item, "content"):
            content_type = (read_str(content, "type") or "").lower()
            if content_type in {"output_text", "text"}:
                text_value = read_str(content, "text")
                if text_value:
                    chunks.append(text_value)
    combined = "\n".join(chunks)
    if not combined.strip():
        raise ProviderResponseError(
            provider=OpenAIReasoningService.provider_name,
            detail="response does not contain output text",
        )
    return combined


__all__ = ["DEFAULT_OPENAI_MODEL", "OpenAIReasoningService"]
