"""
rkentry - Observability Package

Structlog integration with OpenTelemetry trace context propagation.

Usage:
    from rkentry.observability import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
"""

from rkentry.observability.logging import (
    EntryLogger,
    LogContext,
    LoggingConfig,
    bind_context,
    clear_context,
    get_logger,
    setup_logging,
    shutdown_logging,
    unbind_context,
)

__all__ = [
    "EntryLogger",
    "LogContext",
    "LoggingConfig",
    "bind_context",
    "clear_context",
    "get_logger",
    "setup_logging",
    "shutdown_logging",
    "unbind_context",
]
