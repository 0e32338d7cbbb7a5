"""Spec document parsing and minimal-diff status updates."""

from reqcheck.specs.mutator import SpecMutator
from reqcheck.specs.parser import (
    SpecParseError,
    derive_requirement_id,
    detect_format,
    load_spec,
    parse_markdown,
    parse_structured,
)

__all__ = [
    "SpecMutator",
    "SpecParseError",
    "derive_requirement_id",
    "detect_format",
    "load_spec",
    "parse_markdown",
    "parse_structured",
]
