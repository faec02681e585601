"""
rkentry - Entry Registry

Thread-safe registry of entries keyed by (kind, name), with per-entry
embedded resource handles, a free-form value map, service metadata and
the process LifecycleCoordinator.

Features:
- Every operation serialized by a single lock
- Snapshot listings, safe to iterate while others register
- At most one default entry per kind, enforced on registration
- Resettable process-wide default registry for tests
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from importlib.resources.abc import Traversable
from typing import Any, Dict, List, Optional

from rkentry.core.errors import DuplicateDefaultEntryError, ErrorContext
from rkentry.core.lifecycle import LifecycleCoordinator
from rkentry.observability.logging import get_logger
from rkentry.registry.entry import Entry, is_default_entry
from rkentry.settings import get_settings

logger = get_logger(__name__)


class Registry:
    """
    Registry of bootstrap entries.

    Example:
        >>> registry = Registry()
        >>> registry.add_entry(CertEntry("my-cert"))
        >>> registry.get_entry("CertEntry", "my-cert")
    """

    def __init__(
        self,
        service_name: Optional[str] = None,
        service_version: Optional[str] = None,
        lifecycle: Optional[LifecycleCoordinator] = None,
    ):
        settings = get_settings()
        self._lock = threading.Lock()
        self._entries: Dict[str, Dict[str, Entry]] = {}
        self._entry_fs: Dict[str, Dict[str, Traversable]] = {}
        self._values: Dict[Any, Any] = {}

        self._service_name = service_name or settings.service_name
        self._service_version = service_version or settings.service_version
        self._event_id = str(uuid.uuid4())
        self._start_time = datetime.now(timezone.utc)
        self._lifecycle = lifecycle or LifecycleCoordinator()

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    @property
    def service_name(self) -> str:
        return self._service_name

    @property
    def service_version(self) -> str:
        return self._service_version

    @property
    def event_id(self) -> str:
        return self._event_id

    @property
    def start_time(self) -> datetime:
        return self._start_time

    @property
    def up_time(self) -> timedelta:
        return datetime.now(timezone.utc) - self._start_time

    @property
    def lifecycle(self) -> LifecycleCoordinator:
        return self._lifecycle

    # -------------------------------------------------------------------------
    # Entries
    # -------------------------------------------------------------------------

    def add_entry(self, entry: Optional[Entry]) -> None:
        """
        Register ``entry``, replacing any entry with the same kind and name.

        Raises:
            DuplicateDefaultEntryError: entry is default and another entry
                of its kind already is
        """
        if entry is None:
            return

        with self._lock:
            by_name = self._entries.setdefault(entry.kind, {})
            if is_default_entry(entry):
                for name, other in by_name.items():
                    if name != entry.name and is_default_entry(other):
                        raise DuplicateDefaultEntryError(
                            f"entry {other.name!r} is already the default {entry.kind}",
                            kind=entry.kind,
                            name=entry.name,
                            context=ErrorContext.from_current_span(
                                "add_entry",
                                "registry",
                                entry_kind=entry.kind,
                                entry_name=entry.name,
                            ),
                        )
            by_name[entry.name] = entry

        logger.debug("Entry registered", entry_kind=entry.kind, entry_name=entry.name)

    def get_entry(self, kind: str, name: str) -> Optional[Entry]:
        with self._lock:
            return self._entries.get(kind, {}).get(name)

    def get_entry_or_default(self, kind: str, name: str) -> Optional[Entry]:
        """Exact lookup, falling back to the default entry of ``kind``."""
        with self._lock:
            by_name = self._entries.get(kind, {})
            entry = by_name.get(name)
            if entry is not None:
                return entry
            for candidate in by_name.values():
                if is_default_entry(candidate):
                    return candidate
            return None

    def list_entries_by_kind(self, kind: str) -> List[Entry]:
        with self._lock:
            return list(self._entries.get(kind, {}).values())

    def list_entries(self) -> Dict[str, List[Entry]]:
        with self._lock:
            return {kind: list(by_name.values()) for kind, by_name in self._entries.items()}

    def remove_entry(self, kind: str, name: str) -> None:
        with self._lock:
            by_name = self._entries.get(kind)
            if by_name is None or by_name.pop(name, None) is None:
                return
            if not by_name:
                del self._entries[kind]

    def remove_entries_by_kind(self, kind: str) -> None:
        with self._lock:
            self._entries.pop(kind, None)

    # -------------------------------------------------------------------------
    # Embedded resources
    # -------------------------------------------------------------------------

    def map_entry_fs(self, kind: str, name: str, fs: Optional[Traversable]) -> None:
        """Attach a read-only resource tree to (kind, name)."""
        if not kind or not name or fs is None:
            return
        with self._lock:
            self._entry_fs.setdefault(kind, {})[name] = fs

    def entry_fs(self, kind: str, name: str) -> Optional[Traversable]:
        with self._lock:
            return self._entry_fs.get(kind, {}).get(name)

    # -------------------------------------------------------------------------
    # Values
    # -------------------------------------------------------------------------

    def add_value(self, key: Any, value: Any) -> None:
        with self._lock:
            self._values[key] = value

    def get_value(self, key: Any) -> Any:
        with self._lock:
            return self._values.get(key)

    def list_values(self) -> Dict[Any, Any]:
        with self._lock:
            return dict(self._values)

    def remove_value(self, key: Any) -> None:
        with self._lock:
            self._values.pop(key, None)

    def clear_values(self) -> None:
        with self._lock:
            self._values.clear()


# Global registry instance
_registry: Optional[Registry] = None
_registry_lock = threading.Lock()


def get_registry() -> Registry:
    """Get the process-wide registry, creating it on first use."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = Registry()
    return _registry


def set_registry(registry: Registry) -> None:
    """Replace the process-wide registry."""
    global _registry
    with _registry_lock:
        _registry = registry


def reset_registry() -> None:
    """Drop the process-wide registry; the next get_registry() builds a fresh one."""
    global _registry
    with _registry_lock:
        _registry = None
