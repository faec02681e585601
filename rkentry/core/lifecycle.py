"""
rkentry - Lifecycle Coordinator

Unifies every way a process can be asked to stop (OS signals, an explicit
shutdown() call, a deadline) into one wake-up channel, and drains the
registered shutdown hooks exactly once.

Features:
- Cancellable LifecycleContext handed to entries
- Signal forwarding for SIGHUP, SIGINT, SIGTERM and SIGQUIT
- Latched shutdown() and wait(), safe to call from any thread
- Blocking wait() plus an asyncio-friendly wait_async()

Usage:
    coordinator = LifecycleCoordinator()   # routes shutdown signals into wait()
    coordinator.add_shutdown_hook(server.stop)
    reason = coordinator.wait()   # "shutdown by signal SIGTERM"
"""

from __future__ import annotations

import asyncio
import queue
import signal
import threading
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from rkentry.observability.logging import get_logger

logger = get_logger(__name__)

ShutdownHook = Callable[[], None]

CONTEXT_CANCELED = "context canceled"
DEADLINE_EXCEEDED = "deadline exceeded"

SHUTDOWN_SIGNALS: Tuple[signal.Signals, ...] = tuple(
    getattr(signal, name)
    for name in ("SIGHUP", "SIGINT", "SIGTERM", "SIGQUIT")
    if hasattr(signal, name)
)

# Wake-up channel message kinds
_SIGNAL = "signal"
_CONTEXT = "context"


def _signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return str(signum)


class LifecycleState(Enum):
    """Coordinator states."""

    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class LifecycleContext:
    """
    Cancellation token shared by the coordinator and the entries it drives.

    Cancelled once; later cancel() calls are no-ops.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = threading.Event()
        self._reason: Optional[str] = None
        self._callbacks: List[Callable[[str], None]] = []

    def cancel(self, reason: str = CONTEXT_CANCELED) -> bool:
        """Cancel the context. Returns True only for the call that cancelled."""
        with self._lock:
            if self._done.is_set():
                return False
            self._reason = reason
            self._done.set()
            callbacks = list(self._callbacks)

        for callback in callbacks:
            callback(reason)
        return True

    @property
    def cancelled(self) -> bool:
        return self._done.is_set()

    @property
    def reason(self) -> Optional[str]:
        """Why the context was cancelled, None while it is live."""
        return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._done.wait(timeout)

    def add_done_callback(self, callback: Callable[[str], None]) -> None:
        """Run ``callback(reason)`` on cancellation, immediately if already cancelled."""
        with self._lock:
            if not self._done.is_set():
                self._callbacks.append(callback)
                return
            reason = self._reason
        callback(reason or CONTEXT_CANCELED)


class LifecycleCoordinator:
    """
    Process shutdown coordinator.

    Signals and context cancellation are pushed onto a single queue;
    wait() blocks on that queue, records the first reason it receives and
    runs the shutdown hooks in registration order.

    Built on the main thread, the coordinator installs its signal handlers
    immediately, so SIGHUP, SIGINT, SIGTERM and SIGQUIT reach wait() instead
    of killing the process. Pass ``listen=False`` to leave the process
    handlers alone.
    """

    def __init__(self, listen: bool = True) -> None:
        self._lock = threading.Lock()
        self._wait_lock = threading.Lock()
        self._channel: "queue.SimpleQueue[Tuple[str, Any]]" = queue.SimpleQueue()

        self._context = LifecycleContext()
        self._context.add_done_callback(self._on_context_done)

        self._hooks: List[ShutdownHook] = []
        self._shutdown_fired = False
        self._signalled = False
        self._drained = False
        self._reason: Optional[str] = None

        self._deadline_timer: Optional[threading.Timer] = None
        self._previous_handlers: Dict[int, Any] = {}
        self._async_listening = False

        if listen and threading.current_thread() is threading.main_thread():
            self.listen_signals()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def context(self) -> LifecycleContext:
        return self._context

    @property
    def state(self) -> LifecycleState:
        if self._drained:
            return LifecycleState.TERMINATED
        if self._signalled or self._context.cancelled:
            return LifecycleState.SHUTTING_DOWN
        return LifecycleState.RUNNING

    @property
    def listening(self) -> bool:
        """Whether shutdown signals are currently routed into this coordinator."""
        return bool(self._previous_handlers) or self._async_listening

    @property
    def shutdown_reason(self) -> Optional[str]:
        return self._reason

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def add_shutdown_hook(self, hook: Optional[ShutdownHook]) -> None:
        if hook is None:
            return
        with self._lock:
            self._hooks.append(hook)

    def list_shutdown_hooks(self) -> List[ShutdownHook]:
        with self._lock:
            return list(self._hooks)

    # -------------------------------------------------------------------------
    # Triggers
    # -------------------------------------------------------------------------

    def _on_context_done(self, reason: str) -> None:
        self._channel.put((_CONTEXT, reason))

    def notify_signal(self, sig: Union[int, signal.Signals]) -> None:
        """
        Forward a received signal into the wake-up channel.

        Safe to call from a signal handler: SimpleQueue.put is reentrant
        and no lock is taken.
        """
        self._signalled = True
        self._channel.put((_SIGNAL, int(sig)))

    def _handle_signal(self, signum: int, frame: Any) -> None:
        self.notify_signal(signum)

    def listen_signals(self) -> bool:
        """
        Install handlers for the shutdown signals.

        Python only allows this from the main thread; elsewhere nothing is
        installed and False is returned.
        """
        if threading.current_thread() is not threading.main_thread():
            logger.warning("Signal handlers can only be installed from the main thread")
            return False

        for sig in SHUTDOWN_SIGNALS:
            previous = signal.signal(sig, self._handle_signal)
            self._previous_handlers.setdefault(sig, previous)
        logger.debug("Listening for shutdown signals", signals=[s.name for s in SHUTDOWN_SIGNALS])
        return True

    def listen_signals_async(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Install the shutdown signals on an asyncio event loop."""
        loop = loop or asyncio.get_running_loop()
        for sig in SHUTDOWN_SIGNALS:
            loop.add_signal_handler(sig, self.notify_signal, sig)
        self._async_listening = True

    def restore_signals(self) -> None:
        """Put back the handlers replaced by listen_signals()."""
        for sig, handler in self._previous_handlers.items():
            if handler is not None:
                signal.signal(sig, handler)
        self._previous_handlers.clear()

    def shutdown(self) -> bool:
        """
        Request shutdown by cancelling the context.

        Returns True only for the call that fired; later calls are no-ops.
        """
        with self._lock:
            if self._shutdown_fired:
                return False
            self._shutdown_fired = True

        logger.info("Shutdown requested")
        self._context.cancel(CONTEXT_CANCELED)
        return True

    def set_deadline(self, when: Union[datetime, float]) -> None:
        """
        Cancel the context at ``when``.

        Accepts an aware datetime or a number of seconds from now. A new
        deadline replaces the previous one.
        """
        if isinstance(when, datetime):
            delay = (when - datetime.now(timezone.utc)).total_seconds()
        else:
            delay = float(when)

        with self._lock:
            if self._deadline_timer is not None:
                self._deadline_timer.cancel()
            self._deadline_timer = None

            if delay > 0:
                timer = threading.Timer(delay, self._context.cancel, args=(DEADLINE_EXCEEDED,))
                timer.daemon = True
                self._deadline_timer = timer

        if self._deadline_timer is None:
            self._context.cancel(DEADLINE_EXCEEDED)
        else:
            self._deadline_timer.start()

    # -------------------------------------------------------------------------
    # Waiting
    # -------------------------------------------------------------------------

    def wait(self) -> str:
        """
        Block until shutdown is triggered, then run the shutdown hooks.

        The drain runs at most once. Concurrent callers queue on the same
        lock and return the recorded reason once the drain has finished.
        A hook that raises aborts the remaining hooks and propagates.
        """
        with self._wait_lock:
            if self._drained:
                return self._reason or ""

            kind, payload = self._channel.get()
            if kind == _SIGNAL:
                self._reason = f"shutdown by signal {_signal_name(payload)}"
            else:
                self._reason = payload or CONTEXT_CANCELED

            logger.info("Shutdown triggered", reason=self._reason)

            started = time.perf_counter()
            try:
                for hook in self.list_shutdown_hooks():
                    hook()
            finally:
                self._drained = True
                if self._deadline_timer is not None:
                    self._deadline_timer.cancel()

            logger.info(
                "Shutdown hooks completed",
                hooks=len(self._hooks),
                duration_ms=round((time.perf_counter() - started) * 1000, 3),
            )
            return self._reason

    async def wait_async(self) -> str:
        """Await wait() without blocking the event loop."""
        return await asyncio.to_thread(self.wait)
