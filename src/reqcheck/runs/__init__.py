"""Whole-spec runs and the run log."""

from reqcheck.runs.run_log import RunLog, RunLogEntry
from reqcheck.runs.runner import RequirementOutcome, SpecRunner, SpecRunResult

__all__ = ["RequirementOutcome", "RunLog", "RunLogEntry", "SpecRunResult", "SpecRunner"]
