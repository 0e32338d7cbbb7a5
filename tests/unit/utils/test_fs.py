"""Unit tests for filesystem helpers."""

from __future__ import annotations

from pathlib import Path

import pytest

from reqcheck.utils.fs import atomic_write, read_text_preserving_newlines, temp_directory


@pytest.mark.unit
def test_atomic_write_replaces_content_and_leaves_no_temp_files(tmp_path: Path) -> None:
    target = tmp_path / "spec.md"
    target.write_text("old\n", encoding="utf-8")

    atomic_write(target, "new\n")

    assert target.read_text(encoding="utf-8") == "new\n"
    assert sorted(item.name for item in tmp_path.iterdir()) == ["spec.md"]


@pytest.mark.unit
def test_atomic_write_keeps_crlf_line_endings(tmp_path: Path) -> None:
    target = tmp_path / "spec.md"

    atomic_write(target, "a\r\nb\r\n")

    assert target.read_bytes() == b"a\r\nb\r\n"
    assert read_text_preserving_newlines(target) == "a\r\nb\r\n"


@pytest.mark.unit
def test_atomic_write_accepts_bytes(tmp_path: Path) -> None:
    target = tmp_path / "blob.bin"

    atomic_write(target, b"\x00\x01")

    assert target.read_bytes() == b"\x00\x01"


@pytest.mark.unit
def test_atomic_write_requires_existing_parent(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        atomic_write(tmp_path / "missing" / "file.txt", "data")


@pytest.mark.unit
def test_temp_directory_is_removed_even_when_body_raises() -> None:
    captured: list[Path] = []

    with pytest.raises(RuntimeError), temp_directory() as workdir:
        captured.append(workdir)
        (workdir / "script.py").write_text("print(1)\n", encoding="utf-8")
        raise RuntimeError("boom")

    assert captured
    assert not captured[0].exists()
