"""
reqcheck — unit tests for the minimal-diff spec status writer

File: tests/unit/specs/test_mutator.py
Last updated: 2026-10-18

Purpose
- Validate that status writes touch exactly one value and preserve every other byte.

What this test file should cover
- Markdown checkbox flips, CRLF preservation, and no-op writes.
- YAML ``status:`` patching and insertion.
- Reset of every requirement and failure containment.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from reqcheck.specs.mutator import SpecMutator
from reqcheck.specs.parser import derive_requirement_id, load_spec

MARKDOWN_SPEC = """\
# Calculator

## Files
- src/calc.py

## Requirements
- [ ] add returns the sum
- [x] subtract returns the difference
   - [ ] nested item keeps its indentation
"""


def _write(path: Path, content: str) -> Path:
    path.write_bytes(content.encode("utf-8"))
    return path


def _diff_positions(before: bytes, after: bytes) -> list[int]:
    assert len(before) == len(after)
    return [index for index, (left, right) in enumerate(zip(before, after)) if left != right]


@pytest.mark.unit
def test_markdown_pass_flips_exactly_one_byte(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.md", MARKDOWN_SPEC)
    before = spec_path.read_bytes()

    requirement_id = derive_requirement_id("add returns the sum")
    changed = SpecMutator().apply_status(spec_path, requirement_id, True)

    after = spec_path.read_bytes()
    assert changed is True
    positions = _diff_positions(before, after)
    assert len(positions) == 1
    assert after[positions[0] : positions[0] + 1] == b"x"
    assert load_spec(spec_path).requirements[0].status is True


@pytest.mark.unit
def test_markdown_fail_unchecks_and_lookup_by_text_works(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.md", MARKDOWN_SPEC)

    changed = SpecMutator().apply_status(spec_path, "subtract returns the difference", False)

    assert changed is True
    assert "- [ ] subtract returns the difference" in spec_path.read_text(encoding="utf-8")


@pytest.mark.unit
def test_markdown_crlf_line_endings_survive(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.md", MARKDOWN_SPEC.replace("\n", "\r\n"))

    SpecMutator().apply_status(spec_path, "add returns the sum", True)

    raw = spec_path.read_bytes()
    assert b"- [x] add returns the sum\r\n" in raw
    assert raw.count(b"\r\n") == MARKDOWN_SPEC.count("\n")
    assert b"\n" not in raw.replace(b"\r\n", b"")


@pytest.mark.unit
def test_matching_status_is_a_no_op(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.md", MARKDOWN_SPEC)
    modified = spec_path.stat().st_mtime_ns

    changed = SpecMutator().apply_status(spec_path, "subtract returns the difference", True)

    assert changed is False
    assert spec_path.stat().st_mtime_ns == modified
    assert spec_path.read_text(encoding="utf-8") == MARKDOWN_SPEC


@pytest.mark.unit
def test_unknown_requirement_and_missing_file_leave_files_untouched(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.md", MARKDOWN_SPEC)
    mutator = SpecMutator()

    assert mutator.apply_status(spec_path, "no such requirement", True) is False
    assert mutator.apply_status(tmp_path / "missing.md", "add returns the sum", True) is False
    assert mutator.reset(tmp_path / "missing.md") == 0
    assert spec_path.read_text(encoding="utf-8") == MARKDOWN_SPEC


@pytest.mark.unit
def test_markdown_reset_unchecks_every_requirement(tmp_path: Path) -> None:
    content = MARKDOWN_SPEC.replace("- [ ] add", "- [X] add").replace("   - [ ]", "   - [✔]")
    spec_path = _write(tmp_path / "calc.md", content)

    changed = SpecMutator().reset(spec_path)

    assert changed == 3
    assert all(item.status is False for item in load_spec(spec_path).requirements)
    assert spec_path.read_text(encoding="utf-8") == MARKDOWN_SPEC.replace(
        "- [x] subtract", "- [ ] subtract"
    )
    assert SpecMutator().reset(spec_path) == 0


STRUCTURED_SPEC = """\
title: Calculator  # keep this comment
files:
  - src/calc.py
checks:
  - id: add
    require: add returns the sum
    status: false   # set by reqcheck
  - id: "subtract"
    require: subtract returns the difference
  - require: 'multiply is supported'
    test: |
      assert True
    status: yes
"""


@pytest.mark.unit
def test_yaml_patch_replaces_only_status_value(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.yaml", STRUCTURED_SPEC)

    changed = SpecMutator().apply_status(spec_path, "add", True)

    assert changed is True
    assert spec_path.read_text(encoding="utf-8") == STRUCTURED_SPEC.replace(
        "status: false   # set by reqcheck", "status: true   # set by reqcheck"
    )


@pytest.mark.unit
def test_yaml_status_is_inserted_when_missing(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.yaml", STRUCTURED_SPEC)

    SpecMutator().apply_status(spec_path, "subtract", True)

    expected = STRUCTURED_SPEC.replace(
        '  - id: "subtract"\n', '  - id: "subtract"\n    status: true\n'
    )
    assert spec_path.read_text(encoding="utf-8") == expected
    statuses = {item.id: item.status for item in load_spec(spec_path).requirements}
    assert statuses["subtract"] is True


@pytest.mark.unit
def test_yaml_lookup_by_requirement_text(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "calc.yaml", STRUCTURED_SPEC)

    SpecMutator().apply_status(spec_path, "multiply is supported", False)

    text = spec_path.read_text(encoding="utf-8")
    assert text.endswith("      assert True\n    status: false\n")
    assert text.count("status:") == 2


@pytest.mark.unit
def test_yaml_reset_clears_truthy_statuses(tmp_path: Path) -> None:
    content = STRUCTURED_SPEC.replace("status: false   #", "status: true   #")
    spec_path = _write(tmp_path / "calc.yaml", content)

    changed = SpecMutator().reset(spec_path)

    assert changed == 2
    assert all(item.status is False for item in load_spec(spec_path).requirements)
    assert "status: false   # set by reqcheck" in spec_path.read_text(encoding="utf-8")


@pytest.mark.unit
def test_invalid_yaml_is_not_rewritten(tmp_path: Path) -> None:
    spec_path = _write(tmp_path / "broken.yaml", "checks: [unclosed\n")

    assert SpecMutator().apply_status(spec_path, "anything", True) is False
    assert SpecMutator().reset(spec_path) == 0
    assert spec_path.read_text(encoding="utf-8") == "checks: [unclosed\n"
