"""
rkentry - Config Decoder

Decodes a merged Generic Node into a typed configuration object using
pydantic. Any target TypeAdapter accepts works: pydantic models, stdlib
and pydantic dataclasses, TypedDicts and builtin containers.

Features:
- Case-insensitive field matching for every target type
- Nested models, lists, tuples and dicts fitted recursively
- Lax scalar coercion ("9090" decodes into an int field)
- ConfigDecodeError carrying pydantic's error list
"""

from __future__ import annotations

import dataclasses
import types
import typing
from collections.abc import Mapping, Sequence, Set
from typing import Any, Dict, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ConfigDict, PydanticUserError, RootModel, TypeAdapter, ValidationError

from rkentry.config.node import Node, NodeKind, node_kind
from rkentry.core.errors import ConfigDecodeError, ErrorContext

T = TypeVar("T")

# lower-cased spelling -> (key the target validates, field annotation)
FieldKeys = Dict[str, Tuple[str, Any]]


class BootConfigModel(BaseModel):
    """
    Base class for boot configuration targets.

    Unknown keys are ignored, and fields are also reachable under their
    lower-cased spelling when dumping ``by_alias``.
    """

    model_config = ConfigDict(
        alias_generator=str.lower,
        populate_by_name=True,
        extra="ignore",
    )


def _type_name(target: Any) -> str:
    return getattr(target, "__name__", repr(target))


def _type_hints(target: Any) -> Dict[str, Any]:
    try:
        return typing.get_type_hints(target, include_extras=True)
    except (NameError, TypeError):
        # Unresolvable forward references: fall back to whatever is declared
        return {
            name: (value if not isinstance(value, str) else Any)
            for name, value in getattr(target, "__annotations__", {}).items()
        }


def _field_keys(target: Any) -> Optional[FieldKeys]:
    """Keys of a structured target, or None when ``target`` is not one."""
    if isinstance(target, type) and issubclass(target, BaseModel):
        keys: FieldKeys = {}
        for name, info in target.model_fields.items():
            key = info.validation_alias if isinstance(info.validation_alias, str) else info.alias or name
            keys[name.lower()] = (key, info.annotation)
            keys[key.lower()] = (key, info.annotation)
        return keys

    if isinstance(target, type) and dataclasses.is_dataclass(target):
        hints = _type_hints(target)
        return {f.name.lower(): (f.name, hints.get(f.name, Any)) for f in dataclasses.fields(target)}

    if isinstance(target, type) and issubclass(target, dict) and hasattr(target, "__required_keys__"):
        # TypedDict, from typing or typing_extensions
        return {name.lower(): (name, hint) for name, hint in _type_hints(target).items()}

    return None


def _is_mapping_type(annotation: Any) -> bool:
    origin = typing.get_origin(annotation) or annotation
    return isinstance(origin, type) and (
        issubclass(origin, Mapping) or _field_keys(annotation) is not None
    )


def _is_sequence_type(annotation: Any) -> bool:
    origin = typing.get_origin(annotation) or annotation
    return (
        isinstance(origin, type)
        and issubclass(origin, (Sequence, Set))
        and not issubclass(origin, (str, bytes))
    )


def _unwrap(annotation: Any, kind: NodeKind) -> Any:
    """Strip Annotated and pick the Union member that fits a node of ``kind``."""
    origin = typing.get_origin(annotation)

    if origin is typing.Annotated:
        return _unwrap(typing.get_args(annotation)[0], kind)

    if origin is typing.Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        fits = _is_mapping_type if kind is NodeKind.MAPPING else _is_sequence_type
        for member in members:
            member = _unwrap(member, kind)
            if fits(member):
                return member
        return Any

    if isinstance(annotation, type) and issubclass(annotation, RootModel):
        return _unwrap(annotation.model_fields["root"].annotation, kind)

    return annotation


def _fit_keys(node: Node, annotation: Any) -> Node:
    """
    Rename mapping keys to the spelling ``annotation`` validates.

    Keys the target does not declare are lower-cased, like the rest of
    the boot document.
    """
    kind = node_kind(node)
    if kind is NodeKind.SCALAR:
        return node

    annotation = _unwrap(annotation, kind)
    args = typing.get_args(annotation)

    if kind is NodeKind.MAPPING:
        fields = _field_keys(annotation)
        if fields is not None:
            fitted: Dict[Any, Node] = {}
            for key, value in node.items():
                spelled, field_type = fields.get(str(key).lower(), (_lower(key), Any))
                fitted[spelled] = _fit_keys(value, field_type)
            return fitted

        value_type = args[1] if _is_mapping_type(annotation) and len(args) == 2 else Any
        return {_lower(key): _fit_keys(value, value_type) for key, value in node.items()}

    origin = typing.get_origin(annotation)
    if origin is tuple and args and not (len(args) == 2 and args[1] is Ellipsis):
        return [
            _fit_keys(item, args[index] if index < len(args) else Any)
            for index, item in enumerate(node)
        ]

    item_type = args[0] if _is_sequence_type(annotation) and args else Any
    return [_fit_keys(item, item_type) for item in node]


def _lower(key: Any) -> Any:
    return key.lower() if isinstance(key, str) else key


def decode(node: Node, target: Type[T]) -> T:
    """
    Decode ``node`` into an instance of ``target``.

    Mapping keys match the target's field names case-insensitively at
    every level, so ``commonService`` in YAML fills a ``commonService``
    field of a BaseModel, a dataclass or a TypedDict alike.

    Raises:
        ConfigDecodeError: when the node does not fit the target type
    """
    try:
        adapter = TypeAdapter(target)
    except PydanticUserError as e:
        raise ConfigDecodeError(
            f"cannot decode into {_type_name(target)}: {e}",
            target=target,
            context=ErrorContext.from_current_span("decode", "config.decode"),
            cause=e,
        ) from e

    try:
        return adapter.validate_python(_fit_keys(node, target))
    except ValidationError as e:
        raise ConfigDecodeError(
            f"failed to decode boot configuration into {_type_name(target)} "
            f"({e.error_count()} error(s))",
            target=target,
            errors=e.errors(include_url=False),
            context=ErrorContext.from_current_span(
                "decode",
                "config.decode",
                metadata={"target": _type_name(target)},
            ),
            cause=e,
        ) from e
