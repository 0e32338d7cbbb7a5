"""Output rendering for the reqcheck CLI.

File: src/reqcheck/ui/render.py
Last updated: 2026-10-18

Purpose
- Provide a thin rendering layer over ``rich`` for CLI output.
- Respect the NO_COLOR environment variable and the --no-color CLI flag.
"""

from __future__ import annotations

import os
from typing import IO

from rich.console import Console
from rich.markup import escape


def _color_allowed(no_color_flag: bool) -> bool:
    if no_color_flag:
        return False
    return not os.environ.get("NO_COLOR", "")


class CLIRenderer:
    """CLI output renderer.

    All text passed in is escaped, so spec content containing ``[brackets]`` is
    printed literally.
    """

    def __init__(
        self,
        *,
        no_color: bool = False,
        verbose: bool = False,
        file: IO[str] | None = None,
    ) -> None:
        self.verbose = verbose
        color = _color_allowed(no_color)
        self._console = Console(
            file=file,
            no_color=not color,
            highlight=False,
            soft_wrap=True,
        )

    @property
    def console(self) -> Console:
        return self._console

    def kv(self, key: str, value: object) -> None:
        self._console.print(f"[bold]{escape(key)}:[/bold] {escape(str(value))}")

    def text(self, line: str) -> None:
        self._console.print(escape(line))

    def section(self, title: str) -> None:
        self._console.print()
        self._console.print(f"[bold underline]{escape(title)}[/bold underline]")

    def warning(self, text: str) -> None:
        self._console.print(f"  [yellow]Warning:[/yellow] {escape(text)}")

    def ok(self, label: str) -> None:
        self._console.print(f"  [green]PASS[/green]  {escape(label)}")

    def fail(self, label: str, detail: str | None = None) -> None:
        self._console.print(f"  [red]FAIL[/red]  {escape(label)}")
        if detail and self.verbose:
            self._console.print(f"        [dim]{escape(detail)}[/dim]")

    def skipped(self, label: str) -> None:
        self._console.print(f"  [dim]SKIP[/dim]  {escape(label)}")


def create_renderer(*, no_color: bool = False, verbose: bool = False) -> CLIRenderer:
    """Create a CLI renderer with the given settings."""

    return CLIRenderer(no_color=no_color, verbose=verbose)


__all__ = ["CLIRenderer", "create_renderer"]
