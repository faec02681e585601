"""
rkentry - Configuration Package

Boot document resolution: YAML parsing, override grammar, environment
overrides, recursive merge and typed decoding.
"""

from rkentry.config.decode import BootConfigModel, decode
from rkentry.config.env import EnvOverrides, normalize_env_key, parse_env_overrides
from rkentry.config.loader import (
    load_boot_config,
    parse_boot_document,
    parse_flag_overrides,
    read_boot_file,
    resolve_boot_node,
    unmarshal_boot_yaml,
)
from rkentry.config.locale import is_valid_domain, match_locale
from rkentry.config.merge import apply_overrides, merge
from rkentry.config.node import NodeKind, format_path, lower_keys, node_kind
from rkentry.config.overrides import assign, parse_overrides, parse_path, typed_value

__all__ = [
    "BootConfigModel",
    "EnvOverrides",
    "NodeKind",
    "apply_overrides",
    "assign",
    "decode",
    "format_path",
    "is_valid_domain",
    "load_boot_config",
    "lower_keys",
    "match_locale",
    "merge",
    "node_kind",
    "normalize_env_key",
    "parse_boot_document",
    "parse_env_overrides",
    "parse_flag_overrides",
    "parse_overrides",
    "parse_path",
    "read_boot_file",
    "resolve_boot_node",
    "typed_value",
    "unmarshal_boot_yaml",
]
