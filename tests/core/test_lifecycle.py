"""
Tests for the lifecycle coordinator.
"""
import asyncio
import os
import signal
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from rkentry.core.lifecycle import (
    CONTEXT_CANCELED,
    DEADLINE_EXCEEDED,
    SHUTDOWN_SIGNALS,
    LifecycleContext,
    LifecycleCoordinator,
    LifecycleState,
)


@pytest.fixture
def coordinator() -> LifecycleCoordinator:
    return LifecycleCoordinator(listen=False)


def _run_in_threads(count, target):
    barrier = threading.Barrier(count)
    results = [None] * count

    def worker(index):
        barrier.wait()
        results[index] = target()

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=5)
    return results


# =============================================================================
# CONTEXT
# =============================================================================


class TestLifecycleContext:
    """Test the cancellation token."""

    def test_cancel_once(self):
        ctx = LifecycleContext()
        assert ctx.cancel("first") is True
        assert ctx.cancel("second") is False
        assert ctx.reason == "first"
        assert ctx.cancelled

    def test_live_context(self):
        ctx = LifecycleContext()
        assert not ctx.cancelled
        assert ctx.reason is None
        assert ctx.wait(timeout=0.01) is False

    def test_callback_on_cancel(self):
        ctx = LifecycleContext()
        reasons = []
        ctx.add_done_callback(reasons.append)
        ctx.cancel()
        assert reasons == [CONTEXT_CANCELED]

    def test_callback_after_cancel_runs_immediately(self):
        ctx = LifecycleContext()
        ctx.cancel("gone")
        reasons = []
        ctx.add_done_callback(reasons.append)
        assert reasons == ["gone"]


# =============================================================================
# SHUTDOWN
# =============================================================================


class TestShutdown:
    """Test the latched shutdown trigger."""

    def test_initial_state(self, coordinator):
        assert coordinator.state == LifecycleState.RUNNING
        assert not coordinator.context.cancelled
        assert coordinator.shutdown_reason is None

    def test_shutdown_fires_once(self, coordinator):
        assert coordinator.shutdown() is True
        assert coordinator.shutdown() is False
        assert coordinator.context.reason == CONTEXT_CANCELED
        assert coordinator.state == LifecycleState.SHUTTING_DOWN

    def test_concurrent_shutdown_cancels_once(self, coordinator):
        cancellations = []
        coordinator.context.add_done_callback(cancellations.append)

        results = _run_in_threads(16, coordinator.shutdown)

        assert results.count(True) == 1
        assert cancellations == [CONTEXT_CANCELED]

    def test_signal_moves_to_shutting_down(self, coordinator):
        coordinator.notify_signal(signal.SIGTERM)
        assert coordinator.state == LifecycleState.SHUTTING_DOWN


# =============================================================================
# WAIT
# =============================================================================


class TestWait:
    """Test waiting and draining hooks."""

    def test_runs_hooks_in_order(self, coordinator):
        order = []
        coordinator.add_shutdown_hook(lambda: order.append("first"))
        coordinator.add_shutdown_hook(lambda: order.append("second"))
        coordinator.shutdown()

        assert coordinator.wait() == CONTEXT_CANCELED
        assert order == ["first", "second"]
        assert coordinator.state == LifecycleState.TERMINATED
        assert coordinator.shutdown_reason == CONTEXT_CANCELED

    def test_signal_reason(self, coordinator):
        coordinator.notify_signal(signal.SIGTERM)
        assert coordinator.wait() == "shutdown by signal SIGTERM"

    def test_unknown_signal_number(self, coordinator):
        coordinator.notify_signal(250)
        assert coordinator.wait() == "shutdown by signal 250"

    def test_first_trigger_wins(self, coordinator):
        coordinator.notify_signal(signal.SIGINT)
        coordinator.shutdown()
        assert coordinator.wait() == "shutdown by signal SIGINT"

    def test_blocks_until_triggered(self, coordinator):
        reasons = []
        waiter = threading.Thread(target=lambda: reasons.append(coordinator.wait()))
        waiter.start()

        time.sleep(0.1)
        assert waiter.is_alive()

        coordinator.shutdown()
        waiter.join(timeout=5)
        assert not waiter.is_alive()
        assert reasons == [CONTEXT_CANCELED]

    def test_concurrent_waiters_drain_once(self, coordinator):
        calls = []
        coordinator.add_shutdown_hook(lambda: calls.append("a"))
        coordinator.add_shutdown_hook(lambda: calls.append("b"))

        reasons = []
        waiters = [threading.Thread(target=lambda: reasons.append(coordinator.wait())) for _ in range(8)]
        for t in waiters:
            t.start()

        coordinator.shutdown()
        for t in waiters:
            t.join(timeout=5)

        assert calls == ["a", "b"]
        assert reasons == [CONTEXT_CANCELED] * 8

    def test_wait_after_drain_returns_immediately(self, coordinator):
        calls = []
        coordinator.add_shutdown_hook(lambda: calls.append(1))
        coordinator.shutdown()
        coordinator.wait()

        assert coordinator.wait() == CONTEXT_CANCELED
        assert calls == [1]

    def test_hook_failure_propagates_once(self, coordinator):
        calls = []

        def broken():
            raise RuntimeError("hook failed")

        coordinator.add_shutdown_hook(broken)
        coordinator.add_shutdown_hook(lambda: calls.append("after"))
        coordinator.shutdown()

        with pytest.raises(RuntimeError, match="hook failed"):
            coordinator.wait()

        assert calls == []
        assert coordinator.wait() == CONTEXT_CANCELED
        assert coordinator.state == LifecycleState.TERMINATED

    def test_none_hook_ignored(self, coordinator):
        coordinator.add_shutdown_hook(None)
        assert coordinator.list_shutdown_hooks() == []

    def test_hook_listing_is_snapshot(self, coordinator):
        hook = lambda: None  # noqa: E731
        coordinator.add_shutdown_hook(hook)
        hooks = coordinator.list_shutdown_hooks()
        hooks.clear()
        assert coordinator.list_shutdown_hooks() == [hook]


# =============================================================================
# DEADLINES
# =============================================================================


class TestDeadline:
    """Test deadline cancellation."""

    def test_relative_deadline(self, coordinator):
        coordinator.set_deadline(0.05)
        assert coordinator.wait() == DEADLINE_EXCEEDED

    def test_past_deadline_cancels_immediately(self, coordinator):
        coordinator.set_deadline(datetime.now(timezone.utc) - timedelta(seconds=1))
        assert coordinator.context.reason == DEADLINE_EXCEEDED

    def test_replaced_deadline(self, coordinator):
        coordinator.set_deadline(60)
        coordinator.set_deadline(0.05)
        assert coordinator.wait() == DEADLINE_EXCEEDED

    def test_shutdown_before_deadline(self, coordinator):
        coordinator.set_deadline(60)
        coordinator.shutdown()
        assert coordinator.wait() == CONTEXT_CANCELED


# =============================================================================
# SIGNALS
# =============================================================================


@pytest.mark.skipif(not hasattr(signal, "SIGHUP"), reason="POSIX signals required")
class TestSignals:
    """Test OS signal forwarding."""

    def test_shutdown_signals(self):
        names = {sig.name for sig in SHUTDOWN_SIGNALS}
        assert names == {"SIGHUP", "SIGINT", "SIGTERM", "SIGQUIT"}

    def test_listen_signals(self, coordinator):
        assert coordinator.listen_signals() is True
        try:
            os.kill(os.getpid(), signal.SIGHUP)
            assert coordinator.wait() == "shutdown by signal SIGHUP"
        finally:
            coordinator.restore_signals()

    def test_listen_signals_off_main_thread(self, coordinator):
        results = []
        t = threading.Thread(target=lambda: results.append(coordinator.listen_signals()))
        t.start()
        t.join()
        assert results == [False]

    def test_listens_on_construction(self):
        coordinator = LifecycleCoordinator()

        assert coordinator.listening is True
        assert signal.getsignal(signal.SIGTERM) == coordinator._handle_signal

        os.kill(os.getpid(), signal.SIGTERM)
        assert coordinator.wait() == "shutdown by signal SIGTERM"

    def test_listen_opt_out(self):
        before = signal.getsignal(signal.SIGTERM)
        coordinator = LifecycleCoordinator(listen=False)

        assert coordinator.listening is False
        assert signal.getsignal(signal.SIGTERM) is before

    def test_construction_off_main_thread(self):
        built = []
        t = threading.Thread(target=lambda: built.append(LifecycleCoordinator()))
        t.start()
        t.join()
        assert built[0].listening is False

    def test_restore_signals(self):
        before = signal.getsignal(signal.SIGTERM)
        coordinator = LifecycleCoordinator()
        coordinator.restore_signals()

        assert signal.getsignal(signal.SIGTERM) == before
        assert coordinator.listening is False


# =============================================================================
# ASYNC
# =============================================================================


class TestAsync:
    """Test asyncio integration."""

    @pytest.mark.asyncio
    async def test_wait_async(self, coordinator):
        asyncio.get_running_loop().call_later(0.05, coordinator.shutdown)
        assert await coordinator.wait_async() == CONTEXT_CANCELED

    @pytest.mark.asyncio
    @pytest.mark.skipif(not hasattr(signal, "SIGHUP"), reason="POSIX signals required")
    async def test_listen_signals_async(self, coordinator):
        loop = asyncio.get_running_loop()
        coordinator.listen_signals_async(loop)
        try:
            loop.call_later(0.05, os.kill, os.getpid(), signal.SIGHUP)
            assert await coordinator.wait_async() == "shutdown by signal SIGHUP"
        finally:
            for sig in SHUTDOWN_SIGNALS:
                loop.remove_signal_handler(sig)
