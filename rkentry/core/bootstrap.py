"""
rkentry - Bootstrap

Turns a boot document into running entries and takes them down again.

Architecture:
    boot YAML -> registration functions -> entries -> Registry -> LifecycleCoordinator

Registration functions receive the raw boot document, build the entries
they own (usually decoding their section through unmarshal_boot_yaml) and
return them keyed by name. Preload functions run before the others so
that shared entries (certs, config holders) exist first.

Usage:
    register_entry_reg_func(register_cert_entries)

    boot = Bootstrapper(read_boot_file("boot.yaml"))
    reason = boot.run()   # blocks until SIGTERM or shutdown()
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union
from uuid import UUID, uuid4

from rkentry.core.errors import RkEntryError
from rkentry.observability.logging import EntryLogger, get_logger
from rkentry.registry.entry import Entry
from rkentry.registry.registry import Registry, get_registry

logger = get_logger(__name__)

RegFunc = Callable[[bytes], Dict[str, Entry]]


# =============================================================================
# REGISTRATION FUNCTIONS
# =============================================================================

_reg_lock = threading.Lock()
_entry_reg_funcs: List[RegFunc] = []
_preload_reg_funcs: List[RegFunc] = []


def register_entry_reg_func(func: Optional[RegFunc]) -> None:
    """Register a function that builds entries from the boot document."""
    if func is None:
        return
    with _reg_lock:
        _entry_reg_funcs.append(func)


def register_preload_reg_func(func: Optional[RegFunc]) -> None:
    """Register a function whose entries are bootstrapped before all others."""
    if func is None:
        return
    with _reg_lock:
        _preload_reg_funcs.append(func)


def list_entry_reg_funcs() -> List[RegFunc]:
    with _reg_lock:
        return list(_entry_reg_funcs)


def list_preload_reg_funcs() -> List[RegFunc]:
    with _reg_lock:
        return list(_preload_reg_funcs)


def clear_reg_funcs() -> None:
    """Forget every registration function. Intended for tests."""
    with _reg_lock:
        _entry_reg_funcs.clear()
        _preload_reg_funcs.clear()


# =============================================================================
# LIFECYCLE PHASES AND EVENTS
# =============================================================================


class BootPhase(Enum):
    """
    Bootstrapper phases.

    CREATED → BOOTSTRAPPING → RUNNING → INTERRUPTING → TERMINATED
    """
    CREATED = "created"
    BOOTSTRAPPING = "bootstrapping"
    RUNNING = "running"
    INTERRUPTING = "interrupting"
    TERMINATED = "terminated"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class LifecycleEvent:
    """Immutable record of one entry bootstrap or interrupt."""
    event_id: UUID
    timestamp: float
    phase: BootPhase
    component: str
    success: bool
    duration_ms: float
    error: Optional[str] = None
    error_type: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success_event(
        cls,
        phase: BootPhase,
        component: str,
        duration_ms: float,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "LifecycleEvent":
        """Factory for successful lifecycle events."""
        return cls(
            event_id=uuid4(),
            timestamp=time.time(),
            phase=phase,
            component=component,
            success=True,
            duration_ms=duration_ms,
            metadata=metadata or {},
        )

    @classmethod
    def failure_event(
        cls,
        phase: BootPhase,
        component: str,
        error: BaseException,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "LifecycleEvent":
        """Factory for failed lifecycle events."""
        return cls(
            event_id=uuid4(),
            timestamp=time.time(),
            phase=phase,
            component=component,
            success=False,
            duration_ms=0,
            error=str(error),
            error_type=type(error).__name__,
            metadata=metadata or {},
        )


# =============================================================================
# BOOTSTRAPPER
# =============================================================================


class Bootstrapper:
    """
    Drives the entries produced by the registration functions.

    Entries are bootstrapped in the order their functions return them,
    preload functions first, and interrupted in reverse order.
    """

    def __init__(
        self,
        raw: Union[bytes, str],
        registry: Optional[Registry] = None,
    ):
        self._raw = raw.encode("utf-8") if isinstance(raw, str) else raw
        self._registry = registry or get_registry()
        self._phase = BootPhase.CREATED
        self._entries: List[Entry] = []
        self._events: List[LifecycleEvent] = []
        self._lock = threading.Lock()
        self._interrupted = False

    @property
    def registry(self) -> Registry:
        return self._registry

    @property
    def phase(self) -> BootPhase:
        return self._phase

    @property
    def entries(self) -> List[Entry]:
        return list(self._entries)

    def _record_event(self, event: LifecycleEvent) -> None:
        self._events.append(event)

        if event.success:
            logger.debug("Lifecycle event", component=event.component, duration_ms=event.duration_ms)
        else:
            logger.warning("Lifecycle event failed", component=event.component, error=event.error)

    def _bootstrap_entry(self, entry: Entry) -> None:
        entry_logger = EntryLogger(entry.kind, entry.name)
        component = f"{entry.kind}/{entry.name}"
        entry_logger.bootstrap_started()
        start = time.perf_counter()

        try:
            entry.bootstrap(self._registry.lifecycle.context)
        except Exception as e:
            entry_logger.lifecycle_error("bootstrap", e)
            if isinstance(e, RkEntryError):
                e.with_context("bootstrap", "bootstrap", entry_kind=entry.kind, entry_name=entry.name)
            self._record_event(LifecycleEvent.failure_event(BootPhase.BOOTSTRAPPING, component, e))
            self._phase = BootPhase.FAILED
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        entry_logger.bootstrap_completed(duration_ms)
        self._record_event(LifecycleEvent.success_event(BootPhase.BOOTSTRAPPING, component, duration_ms))
        self._entries.append(entry)

    def bootstrap(self) -> List[Entry]:
        """
        Build and bootstrap every entry.

        A failing entry stops the sequence and its exception propagates;
        entries already bootstrapped stay registered for interrupt().
        """
        self._phase = BootPhase.BOOTSTRAPPING
        logger.info(
            "Bootstrapping entries",
            service=self._registry.service_name,
            event_id=self._registry.event_id,
        )

        for reg_func in list_preload_reg_funcs() + list_entry_reg_funcs():
            built = reg_func(self._raw) or {}
            for entry in built.values():
                if self._registry.get_entry(entry.kind, entry.name) is not entry:
                    self._registry.add_entry(entry)
                self._bootstrap_entry(entry)

        self._phase = BootPhase.RUNNING
        return list(self._entries)

    def interrupt(self) -> None:
        """
        Interrupt bootstrapped entries in reverse order.

        Runs once. A failing entry is logged and recorded; the remaining
        entries are still interrupted.
        """
        with self._lock:
            if self._interrupted:
                return
            self._interrupted = True

        self._phase = BootPhase.INTERRUPTING
        ctx = self._registry.lifecycle.context

        for entry in reversed(self._entries):
            entry_logger = EntryLogger(entry.kind, entry.name)
            component = f"{entry.kind}/{entry.name}"
            start = time.perf_counter()
            try:
                entry.interrupt(ctx)
            except Exception as e:
                entry_logger.lifecycle_error("interrupt", e)
                self._record_event(LifecycleEvent.failure_event(BootPhase.INTERRUPTING, component, e))
                continue

            duration_ms = (time.perf_counter() - start) * 1000
            entry_logger.interrupt_completed(duration_ms)
            self._record_event(LifecycleEvent.success_event(BootPhase.INTERRUPTING, component, duration_ms))

        self._phase = BootPhase.TERMINATED

    def run(self) -> str:
        """
        Bootstrap, then block until shutdown; entries are interrupted by the drain.

        If bootstrap fails, the entries already started are interrupted
        before the error propagates.
        """
        lifecycle = self._registry.lifecycle
        lifecycle.add_shutdown_hook(self.interrupt)

        try:
            self.bootstrap()
        except Exception:
            self.interrupt()
            raise

        return lifecycle.wait()

    def get_lifecycle_report(self) -> Dict[str, Any]:
        """Report of the phase and every recorded lifecycle event."""
        return {
            "event_id": self._registry.event_id,
            "service": self._registry.service_name,
            "version": self._registry.service_version,
            "phase": self._phase.value,
            "uptime_seconds": self._registry.up_time.total_seconds(),
            "events": [
                {
                    "event_id": str(e.event_id),
                    "timestamp": e.timestamp,
                    "phase": e.phase.value,
                    "component": e.component,
                    "success": e.success,
                    "duration_ms": e.duration_ms,
                    "error": e.error,
                    "error_type": e.error_type,
                }
                for e in self._events
            ],
            "total_events": len(self._events),
            "failed_events": sum(1 for e in self._events if not e.success),
            "entries": [f"{e.kind}/{e.name}" for e in self._entries],
        }
