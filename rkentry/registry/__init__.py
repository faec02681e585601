"""rkentry - Entry registry."""

from rkentry.registry.entry import Entry, EntryBase
from rkentry.registry.registry import Registry, get_registry, reset_registry, set_registry

__all__ = [
    "Entry",
    "EntryBase",
    "Registry",
    "get_registry",
    "reset_registry",
    "set_registry",
]
