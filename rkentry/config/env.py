"""
rkentry - Environment Overrides

Turns prefixed environment variables into override nodes.

    RK_GIN_0_PORT=8081   ->  {"gin": [{"port": 8081}]}

Each variable is normalized and applied on its own, so one malformed
variable is logged and skipped without discarding the others.

Values use the --rkset value syntax: "{a,b}" is a list, and a literal
"," or "=" must be escaped with a backslash (RK_NAME=a\\,b).
"""

from __future__ import annotations

import copy
import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Tuple

from rkentry.config.node import Node, OverridePath, PathSegment, format_path
from rkentry.config.overrides import assign, parse_value
from rkentry.core.errors import OverrideSyntaxError
from rkentry.observability.logging import get_logger
from rkentry.settings import get_settings

logger = get_logger(__name__)

_INDEX_RE = re.compile(r"[0-9]+")


@dataclass
class EnvOverrides:
    """Result of scanning the environment."""

    data: Dict[str, Node] = field(default_factory=dict)
    applied: List[str] = field(default_factory=list)
    skipped: List[Tuple[str, str]] = field(default_factory=list)


def _env_marker(prefix: str) -> str:
    return f"{prefix.upper()}_"


def normalize_env_key(key: str, prefix: str) -> OverridePath:
    """
    Normalize a prefixed environment variable name into an OverridePath.

    The prefix and its underscore are stripped, the rest is lower-cased and
    split on "_". A purely numeric token is an index into the segment before
    it, so ``RK_GIN_0_PORT`` becomes ``("gin", 0, "port")``.

    Raises:
        OverrideSyntaxError: missing prefix, empty token or leading index
    """
    marker = _env_marker(prefix)
    if not key.upper().startswith(marker):
        raise OverrideSyntaxError(f"environment key lacks prefix {marker!r}", fragment=key)

    segments: List[PathSegment] = []
    for token in key[len(marker):].lower().split("_"):
        if not token:
            raise OverrideSyntaxError("empty segment in environment key", fragment=key)
        if _INDEX_RE.fullmatch(token):
            if not segments:
                raise OverrideSyntaxError(
                    "array index without a preceding key", fragment=key
                )
            segments.append(int(token))
        else:
            segments.append(token)

    return tuple(segments)


def parse_env_overrides(
    prefix: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> EnvOverrides:
    """
    Collect override nodes from environment variables named PREFIX_*.

    Args:
        prefix: Variable prefix, defaults to the RK_ENV_PREFIX setting
        environ: Variables to scan, defaults to os.environ

    Returns:
        EnvOverrides with the merged node, the applied audit lines and
        the skipped (name, reason) pairs
    """
    prefix = prefix or get_settings().env_prefix
    environ = os.environ if environ is None else environ
    marker = _env_marker(prefix)
    result = EnvOverrides()

    for name in sorted(environ):
        if not name.upper().startswith(marker):
            continue
        raw = environ[name]
        try:
            path = normalize_env_key(name, prefix)
            value = parse_value(raw, fragment=name)
            trial = copy.deepcopy(result.data)
            assign(trial, path, value, fragment=name)
        except OverrideSyntaxError as e:
            result.skipped.append((name, e.message))
            logger.warning(
                "Skipping malformed environment override",
                variable=name,
                reason=e.message,
            )
            continue

        result.data = trial
        result.applied.append(f"{name} => {format_path(path)}={raw}")

    if result.applied:
        logger.debug(
            "Found ENV to override, applying...",
            prefix=prefix,
            overrides=result.applied,
        )

    return result
