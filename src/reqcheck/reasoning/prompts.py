"""
reqcheck — verification prompt templates

File: src/reqcheck/reasoning/prompts.py
Last updated: 2026-10-18

Purpose
- Render the system and user prompts sent to reasoning services.
- Expose a stable hash of the templates so cached verdicts can be tied to a prompt version.

Functional requirements
- Rendering is deterministic for the same inputs.
- Missing variables are errors, never silently blank.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from jinja2 import Environment, StrictUndefined, TemplateError, meta

from reqcheck.utils.hashing import sha256_text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from reqcheck.domain.models import FileContent


SYSTEM_TEMPLATE: Final[str] = """\
You are a strict test evaluator for code quality.
Your job is to determine if the provided code satisfies a specific requirement.
Examine the code carefully and check if it implements the requirement fully.
Your response must be in JSON format with:
{
  "passed": true/false,
  "reason": "brief explanation of the decision"
}
Only respond with this JSON object, nothing else."""

USER_TEMPLATE: Final[str] = """\
Requirement: {{ requirement }}

Code files:
{% for item in files %}{{ item.render() }}{% if not loop.last %}

{% endif %}{% endfor %}

Does the code satisfy the requirement?
Respond with the JSON object only. Be strict but fair."""

_REQUIRED_USER_VARIABLES: Final[frozenset[str]] = frozenset({"requirement", "files"})


class PromptTemplateError(RuntimeError):
    """Raised when a verification prompt cannot be rendered."""


@dataclass(frozen=True, slots=True)
class RenderedPrompt:
    system: str
    user: str
    prompt_version: str


class VerificationPrompt:
    """Deterministic renderer for the verification prompt pair."""

    def __init__(
        self,
        *,
        system_template: str = SYSTEM_TEMPLATE,
        user_template: str = USER_TEMPLATE,
    ) -> None:
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=False,
            lstrip_blocks=False,
            newline_sequence="\n",
            keep_trailing_newline=False,
        )
        declared = meta.find_undeclared_variables(self._environment.parse(user_template))
        missing = _REQUIRED_USER_VARIABLES - declared
        if missing:
            raise PromptTemplateError(
                f"user template must reference: {', '.join(sorted(missing))}"
            )
        self._system_template = system_template
        self._user = self._environment.from_string(user_template)
        self._version = sha256_text(f"{system_template}\x00{user_template}")

    @property
    def version(self) -> str:
        """Hash of both template sources."""

        return self._version

    @property
    def system(self) -> str:
        return self._system_template

    def render(self, requirement_text: str, files: Sequence[FileContent]) -> RenderedPrompt:
        try:
            user = self._user.render(requirement=requirement_text, files=list(files))
        except TemplateError as exc:
            raise PromptTemplateError(f"failed to render verification prompt: {exc}") from exc
        return RenderedPrompt(system=self._system_template, user=user, prompt_version=self._version)


DEFAULT_PROMPT: Final[VerificationPrompt] = VerificationPrompt()


def prompt_version() -> str:
    return DEFAULT_PROMPT.version


__all__ = [
    "DEFAULT_PROMPT",
    "PromptTemplateError",
    "RenderedPrompt",
    "SYSTEM_TEMPLATE",
    "USER_TEMPLATE",
    "VerificationPrompt",
    "prompt_version",
]
