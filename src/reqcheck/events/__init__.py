"""Serialized delivery of verification lifecycle events."""

from reqcheck.events.pipeline import DispatchError, EventPipeline, StatusWriter

__all__ = ["DispatchError", "EventPipeline", "StatusWriter"]
