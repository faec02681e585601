"""
rkentry - Generic Node

The universal value representation used while parsing, overriding and
merging configuration: a scalar, an ordered sequence of nodes, or a
mapping from string keys to nodes. Structure is classified through
``node_kind`` so that every algorithm branches on the same closed set
of kinds.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Tuple, Union

Scalar = Union[str, int, float, bool, None]
Node = Union[Dict[str, "Node"], List["Node"], Scalar]

PathSegment = Union[str, int]
OverridePath = Tuple[PathSegment, ...]


class NodeKind(Enum):
    """Structural kind of a Generic Node."""

    MAPPING = "mapping"
    SEQUENCE = "sequence"
    SCALAR = "scalar"


def node_kind(value: object) -> NodeKind:
    """Classify a value; anything that is not a dict or list is a scalar."""
    if isinstance(value, dict):
        return NodeKind.MAPPING
    if isinstance(value, list):
        return NodeKind.SEQUENCE
    return NodeKind.SCALAR


def same_scalar_type(left: object, right: object) -> bool:
    """Concrete type equality; bool and int are distinct."""
    return type(left) is type(right)


def format_path(path: OverridePath) -> str:
    """
    Render a path in the dotted/bracketed grammar form.

    >>> format_path(("gin", 0, "port"))
    'gin[0].port'
    """
    parts: List[str] = []
    for segment in path:
        if isinstance(segment, int):
            if not parts:
                parts.append(f"[{segment}]")
            else:
                parts[-1] = f"{parts[-1]}[{segment}]"
        else:
            parts.append(segment)
    return ".".join(parts)


def lower_keys(node: Node) -> Node:
    """Return a copy of ``node`` with every string mapping key lower-cased."""
    kind = node_kind(node)
    if kind is NodeKind.MAPPING:
        return {
            (key.lower() if isinstance(key, str) else key): lower_keys(value)
            for key, value in node.items()
        }
    if kind is NodeKind.SEQUENCE:
        return [lower_keys(item) for item in node]
    return node
