"""
rkentry - Boot Config Loader

Resolves a boot document into a typed configuration:

    YAML bytes -> lower-cased node -> env overrides -> flag overrides -> decode

Any failure along the way is fatal and goes through shutdown_with_error.

Usage:
    config = load_boot_config("boot.yaml", MyBootConfig)

    # or from raw bytes, with explicit sources
    config = unmarshal_boot_yaml(raw, MyBootConfig, argv=["--rkset", "gin[0].port=8081"])
"""

from __future__ import annotations

import argparse
import sys
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Type, TypeVar, Union

import yaml

from rkentry.config.decode import decode
from rkentry.config.env import parse_env_overrides
from rkentry.config.merge import apply_overrides
from rkentry.config.node import Node, lower_keys
from rkentry.config.overrides import parse_overrides
from rkentry.core.errors import (
    BootConfigError,
    ErrorContext,
    OverrideSyntaxError,
    RkEntryError,
    shutdown_with_error,
)
from rkentry.observability.logging import get_logger
from rkentry.settings import get_settings

T = TypeVar("T")

logger = get_logger(__name__)


def read_boot_file(
    path: Union[str, Path],
    fs: Optional[Traversable] = None,
) -> bytes:
    """
    Read a boot document from disk or from a packaged resource tree.

    Relative paths resolve against the working directory when no ``fs`` is
    given.
    """
    try:
        if fs is not None:
            return fs.joinpath(str(path)).read_bytes()
        return Path(path).expanduser().resolve().read_bytes()
    except OSError as e:
        raise BootConfigError(
            f"failed to read boot file {str(path)!r}",
            path=str(path),
            context=ErrorContext.from_current_span(
                "read_boot_file", "config.loader", config_path=str(path)
            ),
            cause=e,
        ) from e


def parse_boot_document(raw: Union[bytes, str]) -> Dict[str, Node]:
    """Parse YAML into a lower-cased mapping node. An empty document is {}."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise BootConfigError(
            "failed to parse boot document",
            context=ErrorContext.from_current_span("parse_boot_document", "config.loader"),
            cause=e,
        ) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise BootConfigError(
            f"boot document root must be a mapping, got {type(data).__name__}",
            context=ErrorContext.from_current_span("parse_boot_document", "config.loader"),
        )
    return lower_keys(data)  # type: ignore[return-value]


def parse_flag_overrides(
    argv: Optional[Sequence[str]] = None,
    flag_name: Optional[str] = None,
) -> Dict[str, Node]:
    """
    Collect ``--<flag_name>`` values from the command line and parse them.

    Other arguments are ignored. Repeated flags are joined with "," so
    later assignments win.
    """
    flag_name = flag_name or get_settings().flag_name
    argv = sys.argv[1:] if argv is None else list(argv)

    parser = argparse.ArgumentParser(add_help=False, allow_abbrev=False, exit_on_error=False)
    parser.add_argument(f"--{flag_name}", dest="overrides", action="append", default=[])

    try:
        known, _ = parser.parse_known_args(argv)
    except argparse.ArgumentError as e:
        raise OverrideSyntaxError(str(e), fragment=f"--{flag_name}").with_context(
            "parse_flag_overrides", "config.loader"
        ) from e

    values: List[str] = known.overrides
    if not values:
        return {}

    try:
        overrides = parse_overrides(",".join(values))
    except OverrideSyntaxError as e:
        e.with_context("parse_flag_overrides", "config.loader", metadata={"flag": flag_name})
        raise

    logger.info("Found flags to override, applying...", flag=flag_name, overrides=values)
    return overrides


def resolve_boot_node(
    raw: Union[bytes, str],
    *,
    prefix: Optional[str] = None,
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
    flag_name: Optional[str] = None,
) -> Dict[str, Node]:
    """Produce the merged node without decoding it."""
    base = parse_boot_document(raw)
    env = parse_env_overrides(prefix=prefix, environ=environ)
    flags = parse_flag_overrides(argv, flag_name=flag_name)
    return apply_overrides(base, env.data, flags)


def unmarshal_boot_yaml(
    raw: Union[bytes, str],
    target: Type[T],
    **kwargs: Any,
) -> T:
    """
    Resolve and decode a boot document into ``target``.

    Accepts the keyword arguments of resolve_boot_node. Errors are routed
    through shutdown_with_error and re-raised.
    """
    try:
        node = resolve_boot_node(raw, **kwargs)
        return decode(node, target)
    except RkEntryError as e:
        shutdown_with_error(e)


def load_boot_config(
    path: Union[str, Path],
    target: Type[T],
    fs: Optional[Traversable] = None,
    **kwargs: Any,
) -> T:
    """Read a boot file and decode it; see unmarshal_boot_yaml."""
    try:
        raw = read_boot_file(path, fs=fs)
    except BootConfigError as e:
        shutdown_with_error(e)
    return unmarshal_boot_yaml(raw, target, **kwargs)
