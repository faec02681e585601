"""
rkentry - Unified Error Handling

Provides the error hierarchy shared by the configuration pipeline,
the entry registry and the lifecycle coordinator.

Features:
- Hierarchical exception classes with context preservation
- Error severity levels (syntax errors are recoverable, decode errors are fatal)
- Structured error context for debugging
- Fail-fast shutdown helper for unrecoverable boot errors
- OpenTelemetry integration for error tracing
"""

from __future__ import annotations

import sys
import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import (
    Any,
    Dict,
    List,
    NoReturn,
    Optional,
    Type,
)

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode


class ErrorSeverity(Enum):
    """Error severity levels for prioritized handling."""

    DEBUG = "debug"      # Non-critical, informational
    INFO = "info"        # Minor issue, operation continues
    WARNING = "warning"  # Potential problem, value skipped
    ERROR = "error"      # Significant failure, operation failed
    CRITICAL = "critical"  # Boot cannot continue as configured
    FATAL = "fatal"      # Unrecoverable, process must terminate


@dataclass
class ErrorContext:
    """
    Where an error surfaced: the operation, the component that ran it,
    and the entry or boot file involved.
    """

    operation: str
    component: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    trace_id: Optional[str] = None
    span_id: Optional[str] = None
    entry_kind: Optional[str] = None
    entry_name: Optional[str] = None
    config_path: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    stack_trace: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary, leaving out unset fields."""
        data: Dict[str, Any] = {
            "operation": self.operation,
            "component": self.component,
            "timestamp": self.timestamp.isoformat(),
        }
        for name in ("trace_id", "span_id", "entry_kind", "entry_name", "config_path", "stack_trace"):
            value = getattr(self, name)
            if value is not None:
                data[name] = value
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_current_span(
        cls,
        operation: str,
        component: str,
        **kwargs: Any
    ) -> "ErrorContext":
        """
        Build a context tied to the active OpenTelemetry span, if any.

        Called inside an ``except`` block, the handled traceback is kept.
        """
        span = trace.get_current_span()
        trace_id = None
        span_id = None

        if span and span.is_recording():
            ctx = span.get_span_context()
            if ctx.is_valid:
                trace_id = format(ctx.trace_id, "032x")
                span_id = format(ctx.span_id, "016x")

        if sys.exc_info()[0] is not None:
            kwargs.setdefault("stack_trace", traceback.format_exc())

        return cls(
            operation=operation,
            component=component,
            trace_id=trace_id,
            span_id=span_id,
            **kwargs
        )


class RkEntryError(Exception):
    """
    Base exception for all rkentry errors.

    Provides:
    - Structured error context
    - Severity level
    - Chained exception support
    - OpenTelemetry span recording
    """

    default_severity: ErrorSeverity = ErrorSeverity.ERROR
    error_code: str = "RKENTRY_ERROR"

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        severity: Optional[ErrorSeverity] = None,
        cause: Optional[BaseException] = None,
        recoverable: bool = False,
        suggestions: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context
        self.severity = severity or self.default_severity
        self.cause = cause
        self.recoverable = recoverable
        self.suggestions = suggestions or []
        self.timestamp = datetime.now(timezone.utc)

        self._record_to_span()

    def _record_to_span(self) -> None:
        """Record exception to current OpenTelemetry span."""
        span = trace.get_current_span()
        if span and span.is_recording():
            span.set_status(Status(StatusCode.ERROR, self.message))
            span.record_exception(self)
            span.set_attribute("error.code", self.error_code)
            span.set_attribute("error.severity", self.severity.value)
            span.set_attribute("error.recoverable", self.recoverable)
        self._record_context_to_span()

    def _record_context_to_span(self) -> None:
        if self.context is None:
            return
        span = trace.get_current_span()
        if span and span.is_recording():
            span.set_attribute("error.component", self.context.component)
            span.set_attribute("error.operation", self.context.operation)
            if self.context.entry_kind:
                span.set_attribute("error.entry", f"{self.context.entry_kind}/{self.context.entry_name}")
            if self.context.config_path:
                span.set_attribute("error.config_path", self.context.config_path)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for diagnostics output."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "suggestions": self.suggestions,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context.to_dict() if self.context else None,
            "cause": str(self.cause) if self.cause else None,
        }

    def __str__(self) -> str:
        parts = [f"[{self.error_code}] {self.message}"]
        if self.context:
            parts.append(f" (in {self.context.component}:{self.context.operation})")
        if self.cause:
            parts.append(f" [caused by: {self.cause}]")
        return "".join(parts)

    def with_context(self, operation: str, component: str, **fields: Any) -> "RkEntryError":
        """
        Record where the error surfaced.

        The first context attached wins, so an error re-raised through
        several layers keeps the innermost location. Extra ``fields`` are
        ErrorContext attributes (``entry_kind``, ``config_path``, ...).
        """
        if self.context is None:
            self.context = ErrorContext.from_current_span(operation, component, **fields)
            self._record_context_to_span()
        return self


class BootConfigError(RkEntryError):
    """The boot document could not be read or has an invalid shape."""

    error_code = "BOOT_CONFIG_ERROR"
    default_severity = ErrorSeverity.FATAL

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.path = path


class OverrideSyntaxError(RkEntryError):
    """
    Malformed override assignment.

    Raised by the override grammar parser and the environment key
    normalizer. ``fragment`` holds the offending assignment or key.
    """

    error_code = "OVERRIDE_SYNTAX_ERROR"
    default_severity = ErrorSeverity.WARNING

    def __init__(
        self,
        message: str,
        fragment: Optional[str] = None,
        **kwargs: Any,
    ):
        if fragment is not None:
            message = f"{message}: {fragment!r}"
        super().__init__(message, recoverable=True, **kwargs)
        self.fragment = fragment


class ConfigDecodeError(RkEntryError):
    """The merged configuration could not be decoded into the target type."""

    error_code = "CONFIG_DECODE_ERROR"
    default_severity = ErrorSeverity.FATAL

    def __init__(
        self,
        message: str,
        target: Optional[Type] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.target = target
        self.errors = errors or []


class RegistryError(RkEntryError):
    """Entry registry misuse."""

    error_code = "REGISTRY_ERROR"
    default_severity = ErrorSeverity.ERROR

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        name: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.kind = kind
        self.name = name


class DuplicateDefaultEntryError(RegistryError):
    """A second entry of the same kind was flagged as the default."""

    error_code = "DUPLICATE_DEFAULT_ENTRY"


# Error mapping for automatic classification
ERROR_TYPE_MAP: Dict[Type[Exception], Type[RkEntryError]] = {
    FileNotFoundError: BootConfigError,
    IsADirectoryError: BootConfigError,
    PermissionError: BootConfigError,
    UnicodeDecodeError: BootConfigError,
    TypeError: ConfigDecodeError,
}


def classify_error(error: BaseException) -> RkEntryError:
    """Classify a generic exception into the appropriate RkEntryError type."""
    if isinstance(error, RkEntryError):
        return error
    for error_type, rk_type in ERROR_TYPE_MAP.items():
        if isinstance(error, error_type):
            return rk_type(
                message=str(error),
                cause=error,
            )
    return RkEntryError(
        message=str(error) or type(error).__name__,
        cause=error,
    )


def shutdown_with_error(error: Optional[BaseException] = None) -> NoReturn:
    """
    Abort the boot sequence.

    Logs the error at critical level and raises it as an RkEntryError.
    Left uncaught, the exception terminates the process; running with a
    misread boot configuration is never attempted.
    """
    from rkentry.observability.logging import get_logger

    if error is None:
        error = RkEntryError("internal error", severity=ErrorSeverity.FATAL)

    rk_error = classify_error(error)
    get_logger("rkentry.shutdown").critical(
        "Boot aborted",
        error_code=rk_error.error_code,
        error=rk_error.message,
        severity=rk_error.severity.value,
        context=rk_error.context.to_dict() if rk_error.context else None,
    )

    if rk_error is error:
        raise rk_error
    raise rk_error from error
