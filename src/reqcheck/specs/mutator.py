"""
reqcheck — minimal-diff spec status writer

File: src/reqcheck/specs/mutator.py
Last updated: 2026-10-18

Purpose
- Persist a requirement's pass/fail status back into its spec document.

Functional requirements
- Markdown: flip only the checkbox marker character of the requirement's checklist line.
- YAML: patch only the ``status:`` value of the requirement's list item.
- Every other byte, including line endings, is preserved.
- Failures are logged and leave the file untouched; they never raise.

Non-functional requirements
- Read immediately before write; replace the file atomically.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from reqcheck.domain.models import SpecFormat
from reqcheck.specs.parser import (
    CHECKED_MARKERS,
    SpecParseError,
    detect_format,
    parse_structured,
    scan_markdown,
)
from reqcheck.utils.fs import atomic_write, read_text_preserving_newlines

logger = logging.getLogger(__name__)

PASSED_MARKER: Final[str] = "x"
UNCHECKED_MARKER: Final[str] = " "

_YAML_KEY_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<indent>[ \t]*)(?P<dash>-[ \t]+)?(?P<key>id|require|text):[ \t]*(?P<value>.*?)[ \t]*$"
)
_YAML_STATUS_RE: Final[re.Pattern[str]] = re.compile(
    r"^(?P<prefix>[ \t]*(?:-[ \t]+)?status:[ \t]*)"
    r"(?P<value>true|false|True|False|TRUE|FALSE|yes|no|Yes|No)(?P<rest>[ \t]*(?:#.*)?)$"
)
_YAML_DASH_RE: Final[re.Pattern[str]] = re.compile(r"^(?P<indent>[ \t]*)-(?:[ \t]|$)")


@dataclass(frozen=True, slots=True)
class _Lines:
    """Document split into bodies and their original line terminators."""

    bodies: list[str]
    endings: list[str]

    @classmethod
    def split(cls, content: str) -> _Lines:
        bodies: list[str] = []
        endings: list[str] = []
        for raw in content.splitlines(keepends=True):
            body = raw.rstrip("\r\n\x0b\x0c\x1c\x1d\x1e\x85\u2028\u2029")
            bodies.append(body)
            endings.append(raw[len(body) :])
        return cls(bodies=bodies, endings=endings)

    def join(self) -> str:
        pairs = zip(self.bodies, self.endings, strict=True)
        return "".join(body + ending for body, ending in pairs)


class SpecMutator:
    """Apply status edits to spec documents with single-value substitutions."""

    def apply_status(self, spec_path: Path | str, requirement_id: str, passed: bool) -> bool:
        """Write ``passed`` for ``requirement_id``; return whether the file changed."""

        path = Path(spec_path)
        try:
            spec_format = detect_format(path)
            content = read_text_preserving_newlines(path)
        except (OSError, UnicodeDecodeError, SpecParseError) as exc:
            logger.warning("cannot update %s: %s", path.as_posix(), exc)
            return False

        try:
            if spec_format is SpecFormat.MARKDOWN:
                updated = _set_markdown_status(content, requirement_id, passed)
            else:
                updated = _set_structured_status(content, requirement_id, passed)
        except SpecParseError as exc:
            logger.warning("cannot update %s: %s", path.as_posix(), exc)
            return False

        if updated is None:
            logger.warning(
                "requirement %s not found in %s; status left unchanged",
                requirement_id,
                path.as_posix(),
            )
            return False
        if updated == content:
            return False
        return self._write(path, updated)

    def reset(self, spec_path: Path | str) -> int:
        """Mark every requirement unchecked; return the number of markers changed."""

        path = Path(spec_path)
        try:
            spec_format = detect_format(path)
            content = read_text_preserving_newlines(path)
        except (OSError, UnicodeDecodeError, SpecParseError) as exc:
            logger.warning("cannot reset %s: %s", path.as_posix(), exc)
            return 0

        try:
            if spec_format is SpecFormat.MARKDOWN:
                updated, changed = _reset_markdown(content)
            else:
                updated, changed = _reset_structured(content)
        except SpecParseError as exc:
            logger.warning("cannot reset %s: %s", path.as_posix(), exc)
            return 0

        if changed == 0:
            return 0
        return changed if self._write(path, updated) else 0

    def _write(self, path: Path, content: str) -> bool:
        try:
            atomic_write(path, content)
        except OSError as exc:
            logger.warning("failed to write %s: %s", path.as_posix(), exc)
            return False
        return True


def _set_markdown_status(content: str, requirement_id: str, passed: bool) -> str | None:
    item = scan_markdown(content).find(requirement_id)
    if item is None:
        return None
    lines = _Lines.split(content)
    body = lines.bodies[item.line_index]
    current = body[item.mark_column]
    if (current in CHECKED_MARKERS) == passed:
        return content
    marker = PASSED_MARKER if passed else UNCHECKED_MARKER
    lines.bodies[item.line_index] = body[: item.mark_column] + marker + body[item.mark_column + 1 :]
    return lines.join()


def _reset_markdown(content: str) -> tuple[str, int]:
    scan = scan_markdown(content)
    lines = _Lines.split(content)
    changed = 0
    for item in scan.items:
        body = lines.bodies[item.line_index]
        if body[item.mark_column] == UNCHECKED_MARKER:
            continue
        lines.bodies[item.line_index] = (
            body[: item.mark_column] + UNCHECKED_MARKER + body[item.mark_column + 1 :]
        )
        changed += 1
    return lines.join(), changed


def _set_structured_status(content: str, requirement_id: str, passed: bool) -> str | None:
    spec = parse_structured(content)
    requirement = spec.find_requirement(requirement_id)
    if requirement is None:
        return None

    lines = _Lines.split(content)
    anchor = _find_yaml_anchor(lines.bodies, requirement.id, requirement.text)
    if anchor is None:
        return None
    anchor_index, anchor_match = anchor
    start, end = _yaml_item_bounds(lines.bodies, anchor_index, anchor_match)

    value = "true" if passed else "false"
    for index in range(start, end):
        match = _YAML_STATUS_RE.match(lines.bodies[index])
        if match is None:
            continue
        lines.bodies[index] = f"{match.group('prefix')}{value}{match.group('rest')}"
        return lines.join()

    # No status key in this item yet; add one directly below the anchor key.
    anchor_ending = lines.endings[anchor_index]
    if not anchor_ending:
        lines.endings[anchor_index] = _dominant_ending(lines)
    lines.bodies.insert(anchor_index + 1, f"{' ' * anchor_match.start('key')}status: {value}")
    lines.endings.insert(anchor_index + 1, anchor_ending)
    return lines.join()


def _reset_structured(content: str) -> tuple[str, int]:
    parse_structured(content)
    lines = _Lines.split(content)
    changed = 0
    for index, body in enumerate(lines.bodies):
        match = _YAML_STATUS_RE.match(body)
        if match is None or match.group("value").lower() in {"false", "no"}:
            continue
        lines.bodies[index] = f"{match.group('prefix')}false{match.group('rest')}"
        changed += 1
    return lines.join(), changed


def _find_yaml_anchor(
    bodies: list[str],
    requirement_id: str,
    text: str,
) -> tuple[int, re.Match[str]] | None:
    by_text: tuple[int, re.Match[str]] | None = None
    for index, body in enumerate(bodies):
        match = _YAML_KEY_RE.match(body)
        if match is None:
            continue
        value = _unquote(match.group("value"))
        if match.group("key") == "id" and value == requirement_id:
            return index, match
        if by_text is None and match.group("key") in {"require", "text"} and value == text:
            by_text = (index, match)
    return by_text


def _yaml_item_bounds(
    bodies: list[str],
    anchor: int,
    anchor_match: re.Match[str],
) -> tuple[int, int]:
    """Return the ``[start, end)`` line range of the list item holding ``anchor``."""

    key_column = anchor_match.start("key")
    start = anchor
    dash_indent: int | None = None
    if anchor_match.group("dash"):
        dash_indent = len(anchor_match.group("indent"))
    else:
        for index in range(anchor - 1, -1, -1):
            dash = _YAML_DASH_RE.match(bodies[index])
            if dash is not None and len(dash.group("indent")) < key_column:
                start = index
                dash_indent = len(dash.group("indent"))
                break
    if dash_indent is None:
        dash_indent = max(key_column - 2, 0)

    end = len(bodies)
    for index in range(anchor + 1, len(bodies)):
        body = bodies[index]
        stripped = body.lstrip()
        if not stripped or stripped.startswith("#"):
            continue
        if len(body) - len(stripped) <= dash_indent:
            end = index
            break
    return start, end


def _unquote(value: str) -> str:
    stripped = value.split(" #", 1)[0].strip()
    if len(stripped) >= 2 and stripped[0] == stripped[-1] and stripped[0] in {"'", '"'}:
        return stripped[1:-1]
    return stripped


def _dominant_ending(lines: _Lines) -> str:
    for ending in lines.endings:
        if ending:
            return ending
    return "\n"


__all__ = ["PASSED_MARKER", "UNCHECKED_MARKER", "SpecMutator"]
