"""
reqcheck — reasoning services

File: src/reqcheck/reasoning/__init__.py
Last updated: 2026-10-18

Purpose
- Public surface for reasoning service adapters, prompt rendering, and verdict parsing.
"""

from reqcheck.reasoning.anthropic_adapter import AnthropicReasoningService
from reqcheck.reasoning.base import (
    BackoffConfig,
    ProviderAuthenticationError,
    ProviderError,
    ProviderRateLimitError,
    ProviderResponseError,
    ProviderServiceError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ReasoningService,
    run_with_retries,
)
from reqcheck.reasoning.factory import SUPPORTED_PROVIDERS, build_reasoning_service
from reqcheck.reasoning.openai_adapter import OpenAIReasoningService
from reqcheck.reasoning.prompts import DEFAULT_PROMPT, VerificationPrompt, prompt_version
from reqcheck.reasoning.verdict_parser import ParsedVerdict, ParseFailure, parse_verdict

__all__ = [
    "AnthropicReasoningService",
    "BackoffConfig",
    "DEFAULT_PROMPT",
    "OpenAIReasoningService",
    "ParseFailure",
    "ParsedVerdict",
    "ProviderAuthenticationError",
    "ProviderError",
    "ProviderRateLimitError",
    "ProviderResponseError",
    "ProviderServiceError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ReasoningService",
    "SUPPORTED_PROVIDERS",
    "VerificationPrompt",
    "build_reasoning_service",
    "parse_verdict",
    "prompt_version",
    "run_with_retries",
]
