from __future__ import annotations

import asyncio

import requests

from chamada_diaria.sync.monitor import ConnectivityMonitor, HttpProbe


class RecordingEngine:
    def __init__(self):
        self.triggers = []
        self.connectivity = []

    def trigger(self, *, force: bool = False):
        self.triggers.append(force)
        return None

    def note_connectivity(self, online: bool) -> None:
        self.connectivity.append(online)


class ScriptedProbe:
    def __init__(self, *answers):
        self._answers = list(answers)

    def __call__(self) -> bool:
        answer = self._answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


class FakeMonotonic:
    def __init__(self):
        self.t = 0.0

    def __call__(self) -> float:
        return self.t


def run_checks(monitor, n):
    async def scenario():
        for _ in range(n):
            await monitor.check()

    asyncio.run(scenario())


def test_triggers_only_on_offline_to_online_transition():
    engine = RecordingEngine()
    monitor = ConnectivityMonitor(engine, ScriptedProbe(False, True, True, False, True), monotonic=FakeMonotonic())

    run_checks(monitor, 5)

    assert engine.triggers == [False, False]
    assert engine.connectivity == [False, True, True, False, True]
    assert monitor.is_online is True


def test_periodic_trigger_while_online():
    engine = RecordingEngine()
    clock = FakeMonotonic()
    monitor = ConnectivityMonitor(engine, ScriptedProbe(True, True, True), sync_interval_seconds=60, monotonic=clock)

    async def scenario():
        await monitor.check()  # transition
        clock.t = 30
        await monitor.check()  # too early
        clock.t = 61
        await monitor.check()  # periodic

    asyncio.run(scenario())
    assert engine.triggers == [False, False]


def test_probe_exception_counts_as_offline():
    engine = RecordingEngine()
    monitor = ConnectivityMonitor(engine, ScriptedProbe(RuntimeError("dns")), monotonic=FakeMonotonic())

    run_checks(monitor, 1)

    assert monitor.is_online is False
    assert engine.triggers == []


def test_pushed_events_and_manual_sync():
    engine = RecordingEngine()
    monitor = ConnectivityMonitor(engine, ScriptedProbe(), monotonic=FakeMonotonic())

    monitor.set_online(False)
    assert monitor.request_sync() is None
    monitor.sync_now()
    monitor.set_online(True)
    monitor.request_sync()

    assert engine.triggers == [True, False, False]


class FakeResponse:
    def __init__(self, status_code):
        self.status_code = status_code


class FakeSession:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def head(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


def test_http_probe():
    ok = FakeSession(FakeResponse(401))
    assert HttpProbe("https://x.supabase.co", timeout=1.5, session=ok)() is True
    assert ok.calls[0][1]["timeout"] == 1.5

    assert HttpProbe("https://x", session=FakeSession(FakeResponse(503)))() is False
    assert HttpProbe("https://x", session=FakeSession(requests.ConnectionError("down")))() is False
