from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

import requests

from ..core.constants import (
    DEFAULT_CONNECTIVITY_POLL_SECONDS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_SYNC_INTERVAL_SECONDS,
)
from .engine import SyncEngine

logger = logging.getLogger(__name__)

Probe = Callable[[], bool]


class HttpProbe:
    """Reachability check: any HTTP answer below 500 counts as online."""

    def __init__(
        self,
        url: str,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._url = url
        self._timeout = timeout
        self._session = session or requests.Session()

    def __call__(self) -> bool:
        try:
            response = self._session.head(self._url, timeout=self._timeout, allow_redirects=True)
        except requests.RequestException as e:
            logger.debug("Connectivity probe failed: %s", e)
            return False
        return response.status_code < 500


class ConnectivityMonitor:
    """Watches online/offline transitions and nudges the sync engine.

    Triggers on every offline->online transition and, while online, every
    ``sync_interval_seconds``. The probe is the only I/O it does.
    """

    def __init__(
        self,
        engine: SyncEngine,
        probe: Probe,
        *,
        poll_seconds: float = DEFAULT_CONNECTIVITY_POLL_SECONDS,
        sync_interval_seconds: float = DEFAULT_SYNC_INTERVAL_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self._engine = engine
        self._probe = probe
        self._poll_seconds = float(poll_seconds)
        self._sync_interval_seconds = float(sync_interval_seconds)
        self._monotonic = monotonic
        self._online: Optional[bool] = None
        self._last_periodic = monotonic()

    @property
    def is_online(self) -> Optional[bool]:
        """None until the first probe (or pushed event) has answered."""

        return self._online

    def set_online(self, online: bool) -> None:
        previous = self._online
        self._online = bool(online)
        self._engine.note_connectivity(self._online)

        if self._online and previous is not True:
            logger.info("Connectivity restored, triggering sync")
            self._last_periodic = self._monotonic()
            self._engine.trigger()
        elif not self._online and previous:
            logger.info("Connectivity lost, sync paused")

    async def check(self) -> bool:
        try:
            online = await asyncio.to_thread(self._probe)
        except Exception:
            logger.exception("Connectivity probe raised, assuming offline")
            online = False

        self.set_online(online)
        if online and self._monotonic() - self._last_periodic >= self._sync_interval_seconds:
            self._last_periodic = self._monotonic()
            self._engine.trigger()
        return online

    async def run(self) -> None:
        while True:
            await self.check()
            await asyncio.sleep(self._poll_seconds)

    def request_sync(self) -> Optional[asyncio.Task]:
        """Automatic trigger after local writes. Skipped while offline."""

        if self._online is False:
            return None
        return self._engine.trigger()

    def sync_now(self) -> Optional[asyncio.Task]:
        """Manual "sync now": ignores the backoff window."""

        return self._engine.trigger(force=True)
