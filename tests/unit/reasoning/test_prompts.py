"""Unit tests for verification prompt rendering."""

from __future__ import annotations

import pytest

from reqcheck.domain.models import FileContent
from reqcheck.reasoning.prompts import (
    DEFAULT_PROMPT,
    SYSTEM_TEMPLATE,
    PromptTemplateError,
    VerificationPrompt,
    prompt_version,
)


def test_render_lists_requirement_and_every_file() -> None:
    files = [
        FileContent(path="src/app.py", content="def add(a, b):\n    return a + b\n"),
        FileContent(path="src/missing.py", content=None, error="not found"),
    ]

    rendered = DEFAULT_PROMPT.render("add returns the sum", files)

    assert rendered.system == SYSTEM_TEMPLATE
    assert rendered.user.startswith("Requirement: add returns the sum\n")
    assert "[src/app.py]:\ndef add(a, b):" in rendered.user
    assert "[src/missing.py] (not found)" in rendered.user
    assert rendered.user.rstrip().endswith("Be strict but fair.")
    assert rendered.prompt_version == prompt_version()


def test_render_is_deterministic() -> None:
    files = [FileContent(path="a.py", content="A = 1\n")]

    assert DEFAULT_PROMPT.render("req", files) == DEFAULT_PROMPT.render("req", files)


def test_version_tracks_template_sources() -> None:
    custom = VerificationPrompt(system_template="Be terse.")

    assert custom.version != DEFAULT_PROMPT.version
    assert VerificationPrompt().version == DEFAULT_PROMPT.version


def test_user_template_must_reference_required_variables() -> None:
    with pytest.raises(PromptTemplateError, match="files"):
        VerificationPrompt(user_template="Requirement: {{ requirement }}")


def test_undefined_variables_fail_at_render_time() -> None:
    prompt = VerificationPrompt(
        user_template="{{ requirement }} {{ files | length }} {{ reviewer }}"
    )

    with pytest.raises(PromptTemplateError, match="failed to render"):
        prompt.render("req", [])
