"""Logging and observability helpers."""

from reqcheck.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    configure_event_logging,
    correlation_scope,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_event_logging",
    "correlation_scope",
    "setup_structured_logging",
    "shutdown_logging",
]
