from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Callable, Optional, TypeVar

from .engine import SyncEngine
from .monitor import ConnectivityMonitor

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncRuntime:
    """The single cooperative scheduler of one device.

    Owns an asyncio event loop running in a background thread. The sync
    engine, the connectivity monitor and every outbox access live on that
    loop; other threads (Flask request handlers) go through ``call``/``run``.
    """

    def __init__(self, engine: SyncEngine, monitor: ConnectivityMonitor, *, name: str = "chamada-sync"):
        self.engine = engine
        self.monitor = monitor
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._monitor_task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, *, watch_connectivity: bool = True) -> None:
        if self.is_running:
            return

        loop = asyncio.new_event_loop()
        ready = threading.Event()

        def serve() -> None:
            asyncio.set_event_loop(loop)
            loop.call_soon(ready.set)
            loop.run_forever()

        self._loop = loop
        self._thread = threading.Thread(target=serve, name=self._name, daemon=True)
        self._thread.start()
        ready.wait()

        if watch_connectivity:
            self.call(self._start_monitor)
        logger.info("Sync runtime started")

    def _start_monitor(self) -> None:
        self._monitor_task = asyncio.get_running_loop().create_task(self.monitor.run())

    def stop(self, *, timeout: float = 10.0) -> None:
        if not self.is_running or self._loop is None:
            return

        self.run(self._shutdown(), timeout=timeout)
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._loop.close()
        self._loop = None
        self._thread = None
        logger.info("Sync runtime stopped")

    async def _shutdown(self) -> None:
        if self._monitor_task is not None:
            self._monitor_task.cancel()
            try:
                await self._monitor_task
            except asyncio.CancelledError:
                pass
            self._monitor_task = None
        await self.engine.stop()

    def _on_loop_thread(self) -> bool:
        return self._thread is not None and threading.get_ident() == self._thread.ident

    def call(self, fn: Callable[..., T], *args: Any, timeout: Optional[float] = None, **kwargs: Any) -> T:
        """Run a plain callable on the loop thread and return its result."""

        if self._on_loop_thread():
            return fn(*args, **kwargs)

        async def invoke() -> T:
            return fn(*args, **kwargs)

        return self.run(invoke(), timeout=timeout)

    def run(self, coro: Awaitable[T], *, timeout: Optional[float] = None) -> T:
        """Run a coroutine on the loop thread and wait for it."""

        if self._loop is None or not self.is_running:
            if asyncio.iscoroutine(coro):
                coro.close()
            raise RuntimeError("SyncRuntime não foi iniciado")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)
