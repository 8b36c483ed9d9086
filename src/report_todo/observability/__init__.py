"""Logging setup and correlation helpers."""

from report_todo.observability.logging import (
    LoggingConfig,
    StructuredLoggingHandle,
    correlation_scope,
    flush_logging,
    get_correlation_context,
    setup_logging,
    setup_structured_logging,
    shutdown_logging,
)

__all__ = [
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "flush_logging",
    "get_correlation_context",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
