from __future__ import annotations

import threading

import pytest

from chamada_diaria.sync.engine import SyncEngine
from chamada_diaria.sync.monitor import ConnectivityMonitor
from chamada_diaria.sync.runtime import SyncRuntime

from fakes import make_mark


@pytest.fixture
def runtime(outbox, gateway, fixed_now):
    engine = SyncEngine(outbox, gateway, clock=fixed_now)
    monitor = ConnectivityMonitor(engine, lambda: True, poll_seconds=0.01)
    rt = SyncRuntime(engine, monitor)
    yield rt
    rt.stop()


def test_call_runs_on_loop_thread(runtime):
    runtime.start(watch_connectivity=False)

    name = runtime.call(lambda: threading.current_thread().name)

    assert name == "chamada-sync"


def test_flush_through_runtime(runtime, outbox, gateway):
    runtime.start(watch_connectivity=False)
    runtime.call(outbox.enqueue, make_mark())

    report = runtime.run(runtime.engine.flush(), timeout=5)

    assert report.confirmed == 1
    assert runtime.call(outbox.count_pending) == 0


def test_call_before_start_fails(runtime):
    with pytest.raises(RuntimeError):
        runtime.call(lambda: None)


def test_stop_is_idempotent(runtime):
    runtime.start()
    runtime.stop()
    runtime.stop()

    assert runtime.is_running is False
