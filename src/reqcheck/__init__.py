"""
reqcheck — requirement verification core

File: src/reqcheck/__init__.py
Last updated: 2026-10-18

Purpose
- Package root. Decides whether source code satisfies natural-language requirements
  by combining sandboxed test scripts, a content-addressed verdict cache, and an
  external reasoning service, then persists the outcome back into spec documents.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
- Keep the public surface small; heavy submodules are imported lazily by callers.
"""

__version__ = "0.3.0"

__all__ = ["__version__"]
