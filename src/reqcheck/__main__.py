"""Module entrypoint for ``python -m reqcheck``."""

from __future__ import annotations

from reqcheck.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
