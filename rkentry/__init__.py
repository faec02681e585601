"""
rkentry - Bootstrap Substrate

Loads boot configuration (YAML, environment and command-line overrides),
keeps a registry of named entries and coordinates graceful shutdown.

Components:
- config: override grammar, env overrides, merge, decode, boot loader
- registry: entry contract and thread-safe entry registry
- core: errors, lifecycle coordinator, bootstrapper
- observability: structlog logging with trace context

Usage:
    from rkentry import Bootstrapper, get_registry, load_boot_config

    config = load_boot_config("boot.yaml", MyBootConfig)
    Bootstrapper(read_boot_file("boot.yaml")).run()
"""

__version__ = "0.1.0"

from rkentry.config import (
    BootConfigModel,
    apply_overrides,
    decode,
    load_boot_config,
    merge,
    parse_env_overrides,
    parse_overrides,
    read_boot_file,
    resolve_boot_node,
    unmarshal_boot_yaml,
)
from rkentry.core import (
    Bootstrapper,
    LifecycleContext,
    LifecycleCoordinator,
    LifecycleState,
    register_entry_reg_func,
    register_preload_reg_func,
    shutdown_with_error,
)
from rkentry.core.errors import (
    BootConfigError,
    ConfigDecodeError,
    DuplicateDefaultEntryError,
    OverrideSyntaxError,
    RegistryError,
    RkEntryError,
)
from rkentry.registry import (
    Entry,
    EntryBase,
    Registry,
    get_registry,
    reset_registry,
    set_registry,
)

__all__ = [
    "__version__",
    # Config
    "BootConfigModel",
    "apply_overrides",
    "decode",
    "load_boot_config",
    "merge",
    "parse_env_overrides",
    "parse_overrides",
    "read_boot_file",
    "resolve_boot_node",
    "unmarshal_boot_yaml",
    # Lifecycle
    "Bootstrapper",
    "LifecycleContext",
    "LifecycleCoordinator",
    "LifecycleState",
    "register_entry_reg_func",
    "register_preload_reg_func",
    "shutdown_with_error",
    # Errors
    "BootConfigError",
    "ConfigDecodeError",
    "DuplicateDefaultEntryError",
    "OverrideSyntaxError",
    "RegistryError",
    "RkEntryError",
    # Registry
    "Entry",
    "EntryBase",
    "Registry",
    "get_registry",
    "reset_registry",
    "set_registry",
]
