"""
rkentry - Override Merge

Applies override nodes onto a base node in place. An override only
replaces values that already exist in the base with the same kind and
type: new keys are never added, sequences are walked up to the shorter
length, None elements in an override sequence leave the base element
alone, and mismatched types are ignored.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from rkentry.config.node import Node, NodeKind, node_kind, same_scalar_type


def merge(base: Node, override: Node) -> None:
    """
    Merge ``override`` into ``base`` in place.

    Both roots must be mappings; anything else is a no-op.
    """
    if node_kind(base) is not NodeKind.MAPPING or node_kind(override) is not NodeKind.MAPPING:
        return
    _merge_mapping(base, override)  # type: ignore[arg-type]


def _merge_mapping(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    for key, value in override.items():
        if key in base:
            _merge_slot(base, key, value)


def _merge_sequence(base: List[Any], override: List[Any]) -> None:
    for index in range(min(len(base), len(override))):
        if override[index] is None:
            continue
        _merge_slot(base, index, override[index])


def _merge_slot(container: Union[Dict[str, Any], List[Any]], slot: Any, value: Any) -> None:
    current = container[slot]
    kind = node_kind(current)
    if kind is not node_kind(value):
        return

    if kind is NodeKind.MAPPING:
        _merge_mapping(current, value)
    elif kind is NodeKind.SEQUENCE:
        _merge_sequence(current, value)
    elif same_scalar_type(current, value):
        container[slot] = value


def apply_overrides(
    base: Dict[str, Node],
    env_overrides: Optional[Dict[str, Node]] = None,
    flag_overrides: Optional[Dict[str, Node]] = None,
) -> Dict[str, Node]:
    """Merge environment overrides, then flag overrides, so flags win."""
    if env_overrides:
        merge(base, env_overrides)
    if flag_overrides:
        merge(base, flag_overrides)
    return base
