"""
rkentry - Entry Contract

An entry is a named, kinded unit of the bootstrap system (a cert store,
a config holder, a web server adapter...). Anything with ``name``,
``kind``, ``bootstrap(ctx)``, ``interrupt(ctx)`` and ``describe()``
qualifies; ``EntryBase`` provides the common plumbing.
"""

from __future__ import annotations

import json
from abc import ABC
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol, runtime_checkable

if TYPE_CHECKING:
    from rkentry.core.lifecycle import LifecycleContext

DEFAULT_DESCRIPTION = "Please contact maintainers to add description of this entry."


@runtime_checkable
class Entry(Protocol):
    """Structural contract every registered entry satisfies."""

    @property
    def name(self) -> str: ...

    @property
    def kind(self) -> str: ...

    def bootstrap(self, ctx: "LifecycleContext") -> None: ...

    def interrupt(self, ctx: "LifecycleContext") -> None: ...

    def describe(self) -> str: ...


def is_default_entry(entry: Any) -> bool:
    """Entries without an is_default attribute are never the default."""
    return bool(getattr(entry, "is_default", False))


class EntryBase(ABC):
    """
    Convenience base for entries.

    Subclasses set ``entry_kind`` and override bootstrap/interrupt as needed.

    Example:
        class CertEntry(EntryBase):
            entry_kind = "CertEntry"

            def bootstrap(self, ctx):
                self.load_certificates()
    """

    entry_kind: str = ""

    def __init__(
        self,
        name: str,
        kind: Optional[str] = None,
        description: str = "",
        is_default: bool = False,
    ):
        self._name = name
        self._kind = kind or self.entry_kind or type(self).__name__
        self._description = description
        self._is_default = is_default

    @property
    def name(self) -> str:
        return self._name

    @property
    def kind(self) -> str:
        return self._kind

    @property
    def is_default(self) -> bool:
        return self._is_default

    def bootstrap(self, ctx: "LifecycleContext") -> None:
        """Bring the entry up. No-op by default."""

    def interrupt(self, ctx: "LifecycleContext") -> None:
        """Release the entry's resources. No-op by default."""

    def describe(self) -> str:
        return self._description or DEFAULT_DESCRIPTION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "description": self.describe(),
            "default": self.is_default,
        }

    def __str__(self) -> str:
        return json.dumps(self.to_dict())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind!r}, name={self.name!r})"
