"""
rkentry - Override Grammar

Parses flat override strings into nested Generic Nodes.

Grammar:
    overrides  := assignment ("," assignment)*
    assignment := path "=" value
    path       := key ("." key | "[" index "]")*
    value      := scalar | "{" scalar ("," scalar)* "}"

Rules:
- "," separates assignments, "=" separates path and value
- "." descends into a mapping, "[n]" into a sequence
- a backslash escapes the next character ("a=x\\,y")
- keys are lower-cased; values are typed (true/false/null/integers)

Usage:
    parse_overrides("gin[0].port=2008,gin[0].enabled=false")
    # {"gin": [{"port": 2008, "enabled": False}]}
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Tuple, Union

from rkentry.config.node import (
    Node,
    NodeKind,
    OverridePath,
    PathSegment,
    format_path,
    node_kind,
)
from rkentry.core.errors import OverrideSyntaxError

_INDEX_RE = re.compile(r"[0-9]+")
_INT_RE = re.compile(r"[+-]?[0-9]+")


# =============================================================================
# SCANNING
# =============================================================================


def _split_assignments(text: str) -> List[str]:
    """Split on unescaped commas that are not inside a {...} list value."""
    fragments: List[str] = []
    buf: List[str] = []
    seen_equals = False
    in_list = False
    i = 0

    while i < len(text):
        ch = text[i]
        if ch == "\\" and i + 1 < len(text):
            buf.append(text[i:i + 2])
            i += 2
            continue

        if ch == "=" and not seen_equals:
            seen_equals = True
            in_list = text.startswith("{", i + 1)
        elif ch == "}" and in_list:
            in_list = False
        elif ch == "," and not in_list:
            fragments.append("".join(buf))
            buf = []
            seen_equals = False
            i += 1
            continue

        buf.append(ch)
        i += 1

    fragments.append("".join(buf))
    return [fragment for fragment in fragments if fragment.strip()]


def _find_unescaped(text: str, target: str, start: int = 0) -> int:
    i = start
    while i < len(text):
        if text[i] == "\\":
            i += 2
            continue
        if text[i] == target:
            return i
        i += 1
    return -1


def _split_unescaped(text: str, separator: str) -> List[str]:
    parts: List[str] = []
    start = 0
    while True:
        pos = _find_unescaped(text, separator, start)
        if pos < 0:
            parts.append(text[start:])
            return parts
        parts.append(text[start:pos])
        start = pos + 1


def _unescape(text: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(text):
        if text[i] == "\\" and i + 1 < len(text):
            out.append(text[i + 1])
            i += 2
            continue
        out.append(text[i])
        i += 1
    return "".join(out)


# =============================================================================
# PATHS AND VALUES
# =============================================================================


def parse_path(text: str, fragment: Optional[str] = None) -> OverridePath:
    """
    Parse a dotted/bracketed path into an OverridePath.

    >>> parse_path("gin[0].commonService.enabled")
    ('gin', 0, 'commonservice', 'enabled')
    """
    fragment = text if fragment is None else fragment
    segments: List[PathSegment] = []
    buf: List[str] = []
    after_index = False
    i = 0

    def push_key() -> None:
        segments.append("".join(buf).lower())
        buf.clear()

    while i < len(text):
        ch = text[i]

        if ch == "\\":
            if i + 1 >= len(text):
                raise OverrideSyntaxError("dangling escape in key", fragment=fragment)
            if after_index:
                raise OverrideSyntaxError("unexpected data after array index", fragment=fragment)
            buf.append(text[i + 1])
            i += 2
            continue

        if ch == ".":
            if buf:
                push_key()
            elif not after_index:
                raise OverrideSyntaxError("empty key segment", fragment=fragment)
            after_index = False
            i += 1
            if i >= len(text):
                raise OverrideSyntaxError("path cannot end with '.'", fragment=fragment)
            continue

        if ch == "[":
            if buf:
                push_key()
            elif not after_index:
                raise OverrideSyntaxError("array index must follow a key", fragment=fragment)
            close = text.find("]", i + 1)
            if close < 0:
                raise OverrideSyntaxError("unmatched '['", fragment=fragment)
            raw_index = text[i + 1:close]
            if not _INDEX_RE.fullmatch(raw_index):
                raise OverrideSyntaxError(
                    f"invalid array index {raw_index!r}", fragment=fragment
                )
            segments.append(int(raw_index))
            after_index = True
            i = close + 1
            continue

        if ch == "]":
            raise OverrideSyntaxError("unmatched ']'", fragment=fragment)

        if after_index:
            raise OverrideSyntaxError("unexpected data after array index", fragment=fragment)
        buf.append(ch)
        i += 1

    if buf:
        push_key()

    if not segments:
        raise OverrideSyntaxError("empty key", fragment=fragment)

    return tuple(segments)


def typed_value(raw: str) -> Union[str, int, bool, None]:
    """
    Convert an override value to its scalar type.

    true/false (any case) become booleans, null becomes None, "0" and
    integers without a leading zero become int; everything else stays a
    string. Floats are not inferred.
    """
    lowered = raw.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if lowered == "null":
        return None
    if raw == "0":
        return 0
    if raw and raw[0] != "0" and _INT_RE.fullmatch(raw):
        return int(raw)
    return raw


def parse_value(raw: str, fragment: Optional[str] = None) -> Node:
    """
    Parse the right-hand side of an assignment.

    Outside a {...} list, "=" and "," must be escaped; environment values
    follow the same rule as a --rkset string.
    """
    fragment = raw if fragment is None else fragment

    if raw.startswith("{"):
        close = _find_unescaped(raw, "}", 1)
        if close < 0:
            raise OverrideSyntaxError("list must terminate with '}'", fragment=fragment)
        if raw[close + 1:]:
            raise OverrideSyntaxError("unexpected data after list", fragment=fragment)
        body = raw[1:close]
        if not body:
            return []
        return [typed_value(_unescape(item)) for item in _split_unescaped(body, ",")]

    for reserved in ("=", ","):
        if _find_unescaped(raw, reserved) >= 0:
            raise OverrideSyntaxError(
                f"unescaped '{reserved}' in value, escape it as '\\{reserved}'",
                fragment=fragment,
            )

    return typed_value(_unescape(raw))


def parse_assignment(fragment: str) -> Tuple[OverridePath, Node]:
    """Parse a single ``path=value`` assignment."""
    pos = _find_unescaped(fragment, "=")
    if pos < 0:
        raise OverrideSyntaxError("key has no value", fragment=fragment)

    path = parse_path(fragment[:pos].strip(), fragment=fragment)
    value = parse_value(fragment[pos + 1:], fragment=fragment)
    return path, value


# =============================================================================
# ASSIGNMENT BUILDER
# =============================================================================


def _get_child(container: Union[Dict[str, Any], List[Any]], segment: PathSegment) -> Any:
    if isinstance(container, dict):
        return container.get(segment)  # type: ignore[arg-type]
    if segment < len(container):  # type: ignore[operator]
        return container[segment]  # type: ignore[index]
    return None


def _put_child(
    container: Union[Dict[str, Any], List[Any]],
    segment: PathSegment,
    value: Any,
) -> None:
    if isinstance(container, dict):
        container[segment] = value  # type: ignore[index]
        return
    if len(container) <= segment:  # type: ignore[operator]
        container.extend([None] * (segment + 1 - len(container)))  # type: ignore[operator]
    container[segment] = value  # type: ignore[index]


def assign(
    data: Dict[str, Node],
    path: OverridePath,
    value: Node,
    fragment: Optional[str] = None,
) -> None:
    """
    Write ``value`` at ``path`` inside ``data``, creating containers on the way.

    Sequences grow to the highest index written; skipped indices hold None.
    Raises OverrideSyntaxError when the path crosses a value of another
    structural kind (a mapping where a scalar was assigned, or the reverse).
    """
    fragment = format_path(path) if fragment is None else fragment
    if not path or not isinstance(path[0], str):
        raise OverrideSyntaxError("path must start with a key", fragment=fragment)

    container: Union[Dict[str, Any], List[Any]] = data
    last = len(path) - 1

    for position, segment in enumerate(path):
        existing = _get_child(container, segment)

        if position == last:
            if existing is not None:
                existing_kind = node_kind(existing)
                if existing_kind is not node_kind(value) and (
                    existing_kind is not NodeKind.SCALAR or node_kind(value) is not NodeKind.SCALAR
                ):
                    raise OverrideSyntaxError(
                        f"conflicting types at {format_path(path)!r}", fragment=fragment
                    )
            _put_child(container, segment, value)
            return

        wanted = NodeKind.SEQUENCE if isinstance(path[position + 1], int) else NodeKind.MAPPING
        if existing is None:
            existing = [] if wanted is NodeKind.SEQUENCE else {}
            _put_child(container, segment, existing)
        elif node_kind(existing) is not wanted:
            raise OverrideSyntaxError(
                f"conflicting types at {format_path(path[:position + 1])!r}",
                fragment=fragment,
            )
        container = existing


def parse_overrides(text: str) -> Dict[str, Node]:
    """
    Parse a comma-separated override string into a nested mapping.

    Empty input yields an empty mapping. Raises OverrideSyntaxError naming
    the first malformed assignment.
    """
    data: Dict[str, Node] = {}
    if not text or not text.strip():
        return data

    for fragment in _split_assignments(text):
        path, value = parse_assignment(fragment)
        assign(data, path, value, fragment=fragment)

    return data
