"""
reqcheck — reasoning verdict parser

File: src/reqcheck/reasoning/verdict_parser.py
Last updated: 2026-10-18

Purpose
- Turn free-form reasoning output into a verdict with ordered fallback strategies.

Functional requirements
- Strategies, first success wins: the whole response is a JSON object, then a
  ``{ ... "passed" ... }`` object embedded in surrounding prose, then a keyword
  heuristic over the lowercased text.
- An embedded object that does not parse is a failure; keywords are only consulted
  when no object is present.
- The result is a tagged union: :class:`ParsedVerdict` or :class:`ParseFailure`.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import StrEnum
from typing import Final, TypeAlias

PARSE_FAILURE_REASON: Final[str] = (
    "Could not parse AI response as JSON. The code may not satisfy the requirement."
)
HEURISTIC_PASS_REASON: Final[str] = "AI indicated the code meets the requirement."
HEURISTIC_FAIL_REASON: Final[str] = "AI indicated the code does not meet the requirement."
DEFAULT_PASS_REASON: Final[str] = "Code satisfies the requirement."
DEFAULT_FAIL_REASON: Final[str] = "Code does not satisfy the requirement."

_EMBEDDED_OBJECT_RE: Final[re.Pattern[str]] = re.compile(r"\{[\s\S]*\"passed\"[\s\S]*\}")
_FENCE_RE: Final[re.Pattern[str]] = re.compile(r"^```[\w-]*\s*\n(?P<body>[\s\S]*?)\n```\s*$")
_NEGATIVE_RE: Final[re.Pattern[str]] = re.compile(
    r"\b(fail|fails|failed|failing)\b|\b(not|doesn't|does not|didn't|never)\s+pass"
)
_AFFIRMATIVE_RE: Final[re.Pattern[str]] = re.compile(r"pass")


class ParseStrategy(StrEnum):
    DIRECT_JSON = "direct_json"
    EMBEDDED_JSON = "embedded_json"
    KEYWORD = "keyword"


@dataclass(frozen=True, slots=True)
class ParsedVerdict:
    passed: bool
    reason: str
    strategy: ParseStrategy


@dataclass(frozen=True, slots=True)
class ParseFailure:
    reason: str
    raw_excerpt: str


ParseResult: TypeAlias = ParsedVerdict | ParseFailure


def parse_verdict(response: str) -> ParseResult:
    """Run the strategy chain over ``response``; never raises."""

    text = response if isinstance(response, str) else str(response)
    stripped = _strip_code_fence(text.strip())

    direct = _parse_object(stripped, ParseStrategy.DIRECT_JSON)
    if direct is not None:
        return direct

    match = _EMBEDDED_OBJECT_RE.search(stripped)
    if match is not None:
        embedded = _parse_object(match.group(0), ParseStrategy.EMBEDDED_JSON)
        if embedded is not None:
            return embedded
        # A malformed verdict object is never reinterpreted by keywords.
        return ParseFailure(reason=PARSE_FAILURE_REASON, raw_excerpt=stripped[:200])

    keyword = _parse_keywords(stripped)
    if keyword is not None:
        return keyword

    return ParseFailure(reason=PARSE_FAILURE_REASON, raw_excerpt=stripped[:200])


def _parse_object(candidate: str, strategy: ParseStrategy) -> ParsedVerdict | None:
    try:
        payload = json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(payload, dict) or "passed" not in payload:
        return None

    # Only a literal JSON ``true`` counts as a pass.
    passed = payload.get("passed") is True
    reason = payload.get("reason")
    if not isinstance(reason, str) or not reason.strip():
        reason = DEFAULT_PASS_REASON if passed else DEFAULT_FAIL_REASON
    return ParsedVerdict(passed=passed, reason=reason.strip(), strategy=strategy)


def _parse_keywords(text: str) -> ParsedVerdict | None:
    lowered = text.lower()
    if _NEGATIVE_RE.search(lowered):
        return ParsedVerdict(
            passed=False, reason=HEURISTIC_FAIL_REASON, strategy=ParseStrategy.KEYWORD
        )
    if _AFFIRMATIVE_RE.search(lowered):
        return ParsedVerdict(
            passed=True, reason=HEURISTIC_PASS_REASON, strategy=ParseStrategy.KEYWORD
        )
    return None


def _strip_code_fence(text: str) -> str:
    match = _FENCE_RE.match(text)
    if match is None:
        return text
    return match.group("body").strip()


__all__ = [
    "DEFAULT_FAIL_REASON",
    "DEFAULT_PASS_REASON",
    "HEURISTIC_FAIL_REASON",
    "HEURISTIC_PASS_REASON",
    "PARSE_FAILURE_REASON",
    "ParseFailure",
    "ParseResult",
    "ParseStrategy",
    "ParsedVerdict",
    "parse_verdict",
]
