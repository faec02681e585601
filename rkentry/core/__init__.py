"""
rkentry - Core Module

Error hierarchy, lifecycle coordination and the entry bootstrapper.
"""

from rkentry.core.bootstrap import (
    BootPhase,
    Bootstrapper,
    LifecycleEvent,
    RegFunc,
    list_entry_reg_funcs,
    register_entry_reg_func,
    register_preload_reg_func,
)
from rkentry.core.errors import (
    ErrorContext,
    ErrorSeverity,
    RkEntryError,
    classify_error,
    shutdown_with_error,
)
from rkentry.core.lifecycle import (
    SHUTDOWN_SIGNALS,
    LifecycleContext,
    LifecycleCoordinator,
    LifecycleState,
)

__all__ = [
    "BootPhase",
    "Bootstrapper",
    "ErrorContext",
    "ErrorSeverity",
    "LifecycleContext",
    "LifecycleCoordinator",
    "LifecycleEvent",
    "LifecycleState",
    "RegFunc",
    "RkEntryError",
    "SHUTDOWN_SIGNALS",
    "classify_error",
    "list_entry_reg_funcs",
    "register_entry_reg_func",
    "register_preload_reg_func",
    "shutdown_with_error",
]
