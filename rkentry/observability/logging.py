"""
rkentry - Structured Logging with Trace Context

Integrates structlog with OpenTelemetry trace context propagation so
override audits, entry lifecycle events and shutdown reasons can be
correlated with distributed traces.

Features:
- Structured JSON logging for log aggregation (ELK, Loki)
- Automatic trace context injection (trace_id, span_id)
- Configurable log levels and output formats
- Context enrichment (entry kind/name, boot phase)

Usage:
    from rkentry.observability.logging import setup_logging, get_logger

    # Setup at startup
    setup_logging(LoggingConfig(level="INFO", json_format=True))

    # Get logger
    logger = get_logger(__name__)
    logger.info("Entry bootstrapped", kind="CertEntry", name="my-cert")
"""
from __future__ import annotations

import json
import logging
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from structlog.types import EventDict, WrappedLogger

from rkentry.settings import get_settings

# Global state
_configured: bool = False


@dataclass
class LoggingConfig:
    """Configuration for structured logging, defaulting to the runtime settings."""

    service_name: str = field(
        default_factory=lambda: get_settings().service_name
    )
    level: str = field(
        default_factory=lambda: get_settings().logging.level
    )
    json_format: bool = field(
        default_factory=lambda: get_settings().logging.json_format
    )
    enable_trace_context: bool = True
    log_to_console: bool = True
    include_timestamp: bool = True
    environment: str = field(
        default_factory=lambda: get_settings().locale.domain
    )


def add_trace_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """
    Structlog processor that adds OpenTelemetry trace context to log events.

    Adds trace_id and span_id from the current span context, enabling
    correlation between logs and traces in observability backends.
    """
    from opentelemetry import trace

    span = trace.get_current_span()
    if span and span.is_recording():
        ctx = span.get_span_context()
        if ctx.is_valid:
            event_dict["trace_id"] = format(ctx.trace_id, "032x")
            event_dict["span_id"] = format(ctx.span_id, "016x")
            event_dict["trace_flags"] = int(ctx.trace_flags)

    return event_dict


def add_service_context(
    service_name: str,
    environment: str,
) -> structlog.types.Processor:
    """
    Create a processor that adds service context to all log events.

    Args:
        service_name: Name of the service
        environment: Deployment domain (empty when unset)
    """

    def processor(
        logger: WrappedLogger,
        method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        event_dict["service"] = service_name
        if environment:
            event_dict["domain"] = environment
        return event_dict

    return processor


def add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Add ISO8601 timestamp."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def format_exception(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Format exception information for structured output."""
    exc_info = event_dict.pop("exc_info", None)
    if exc_info:
        if isinstance(exc_info, tuple):
            event_dict["exception"] = {
                "type": exc_info[0].__name__ if exc_info[0] else None,
                "message": str(exc_info[1]) if exc_info[1] else None,
            }
        elif isinstance(exc_info, BaseException):
            event_dict["exception"] = {
                "type": type(exc_info).__name__,
                "message": str(exc_info),
            }
    return event_dict


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """
    Configure structlog with OpenTelemetry trace context integration.

    Args:
        config: Logging configuration. Uses defaults if not provided.

    Example:
        >>> setup_logging(LoggingConfig(level="DEBUG", json_format=False))
    """
    global _configured

    if _configured:
        return

    config = config or LoggingConfig()

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_service_context(config.service_name, config.environment),
    ]

    if config.include_timestamp:
        processors.append(add_timestamp)

    if config.enable_trace_context:
        processors.append(add_trace_context)

    processors.append(format_exception)
    processors.append(structlog.stdlib.PositionalArgumentsFormatter())
    processors.append(structlog.processors.StackInfoRenderer())
    processors.append(structlog.processors.UnicodeDecoder())

    # Final rendering
    if config.json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configure_stdlib_logging(config)

    _configured = True


def _configure_stdlib_logging(config: LoggingConfig) -> None:
    """Configure Python standard library logging."""
    level = getattr(logging, config.level.upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    if not config.log_to_console:
        return

    # Replace only the handler we installed on a previous configuration
    for handler in root_logger.handlers[:]:
        if getattr(handler, "_rkentry_handler", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if config.json_format:
        console_handler.setFormatter(_JsonFormatter())
    else:
        console_handler.setFormatter(logging.Formatter("%(message)s"))
    console_handler._rkentry_handler = True  # type: ignore[attr-defined]
    root_logger.addHandler(console_handler)


class _JsonFormatter(logging.Formatter):
    """JSON formatter for stdlib records that did not come through structlog."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if message.startswith("{"):
            # Already rendered by structlog's JSONRenderer
            return message

        log_record: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": message,
        }

        if record.exc_info:
            log_record["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_record, default=str)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a structlog logger instance.

    Args:
        name: Logger name, typically __name__

    Returns:
        Bound logger instance
    """
    if not _configured:
        setup_logging()

    return structlog.get_logger(name)


def shutdown_logging() -> None:
    """Flush handlers and allow setup_logging() to run again."""
    global _configured

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.flush()

    structlog.reset_defaults()
    _configured = False


class LogContext:
    """
    Context manager for adding contextual information to all logs.

    Example:
        >>> with LogContext(entry_kind="CertEntry", entry_name="my-cert"):
        ...     logger.info("Bootstrapping")
    """

    def __init__(self, **kwargs: Any):
        self.context = kwargs

    def __enter__(self) -> "LogContext":
        structlog.contextvars.bind_contextvars(**self.context)
        return self

    def __exit__(self, *args: Any) -> None:
        structlog.contextvars.unbind_contextvars(*self.context.keys())

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, *args: Any) -> None:
        self.__exit__(*args)


def bind_context(**kwargs: Any) -> None:
    """Bind contextual variables to all subsequent log messages."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove contextual variables from log context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound contextual variables."""
    structlog.contextvars.clear_contextvars()


class EntryLogger:
    """Logger specialized for entry lifecycle operations."""

    def __init__(self, kind: str, name: str):
        self._logger = get_logger(f"rkentry.entries.{kind}")
        self.kind = kind
        self.name = name

    def bootstrap_started(self) -> None:
        self._logger.debug(
            "Entry bootstrap started",
            entry_kind=self.kind,
            entry_name=self.name,
            component="entry",
        )

    def bootstrap_completed(self, duration_ms: float) -> None:
        self._logger.info(
            "Entry bootstrapped",
            entry_kind=self.kind,
            entry_name=self.name,
            duration_ms=round(duration_ms, 3),
            component="entry",
        )

    def interrupt_completed(self, duration_ms: float) -> None:
        self._logger.info(
            "Entry interrupted",
            entry_kind=self.kind,
            entry_name=self.name,
            duration_ms=round(duration_ms, 3),
            component="entry",
        )

    def lifecycle_error(self, operation: str, error: BaseException) -> None:
        self._logger.error(
            "Entry lifecycle failed",
            entry_kind=self.kind,
            entry_name=self.name,
            operation=operation,
            error=str(error),
            error_type=type(error).__name__,
            component="entry",
        )
