"""
rkentry - Test Configuration

Pytest fixtures and configuration for all tests.
"""
import os
import signal
from pathlib import Path
from typing import Any, Generator, List, Optional, Tuple

import pytest

from rkentry.core.bootstrap import clear_reg_funcs
from rkentry.core.lifecycle import SHUTDOWN_SIGNALS, LifecycleCoordinator
from rkentry.registry import EntryBase, Registry, reset_registry, set_registry

LOCALE_VARIABLES = ("REALM", "REGION", "AZ", "DOMAIN")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch) -> Generator[None, None, None]:
    """Keep RK_* and locale variables of the host out of every test."""
    for name in list(os.environ):
        if name.upper().startswith("RK_") or name in LOCALE_VARIABLES:
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("rkentry.settings._settings", None)
    yield


@pytest.fixture(autouse=True)
def clean_reg_funcs() -> Generator[None, None, None]:
    """Registration functions are process-global; start and end each test empty."""
    clear_reg_funcs()
    yield
    clear_reg_funcs()


@pytest.fixture(autouse=True)
def preserve_signal_handlers() -> Generator[None, None, None]:
    """Coordinators built on the main thread take over the shutdown signals."""
    saved = {sig: signal.getsignal(sig) for sig in SHUTDOWN_SIGNALS}
    yield
    for sig, handler in saved.items():
        if handler is not None:
            signal.signal(sig, handler)


@pytest.fixture
def registry() -> Generator[Registry, None, None]:
    """Fresh registry installed as the process default."""
    reg = Registry(
        service_name="test-service",
        service_version="1.2.3",
        lifecycle=LifecycleCoordinator(listen=False),
    )
    set_registry(reg)
    yield reg
    reset_registry()


class RecordingEntry(EntryBase):
    """Entry that records its lifecycle calls into a shared list."""

    entry_kind = "RecordingEntry"

    def __init__(
        self,
        name: str,
        calls: Optional[List[Tuple[str, str]]] = None,
        kind: Optional[str] = None,
        is_default: bool = False,
        fail_on: Optional[str] = None,
    ):
        super().__init__(name, kind=kind, description="records lifecycle calls", is_default=is_default)
        self.calls = calls if calls is not None else []
        self.fail_on = fail_on
        self.contexts: List[Any] = []

    def bootstrap(self, ctx) -> None:
        self.contexts.append(ctx)
        self.calls.append(("bootstrap", self.name))
        if self.fail_on == "bootstrap":
            raise RuntimeError(f"{self.name} failed to bootstrap")

    def interrupt(self, ctx) -> None:
        self.calls.append(("interrupt", self.name))
        if self.fail_on == "interrupt":
            raise RuntimeError(f"{self.name} failed to interrupt")


@pytest.fixture
def recording_entry():
    """The RecordingEntry class."""
    return RecordingEntry


@pytest.fixture
def sample_boot_yaml() -> str:
    """Boot document with mixed-case keys."""
    return """
gin:
  - name: greeter
    port: 1949
    enabled: true
    commonService:
      enabled: false
cert:
  - name: my-cert
    locale: "*::*::*::*"
logger:
  - name: my-logger
    level: info
"""


@pytest.fixture
def boot_file(tmp_path: Path, sample_boot_yaml: str) -> Path:
    """sample_boot_yaml written to disk."""
    path = tmp_path / "boot.yaml"
    path.write_text(sample_boot_yaml)
    return path
