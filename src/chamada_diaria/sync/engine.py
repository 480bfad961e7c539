from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Optional

from ..chamada.model import MarkKey
from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_MAX_ATTEMPTS_WARNING
from ..core.exceptions import PermanentSyncError, TransientSyncError
from ..gateway.repository import RemoteGateway
from ..offline.outbox import OfflineOutbox
from .backoff import BackoffPolicy
from .status import SyncStatus, SyncStatusPublisher

logger = logging.getLogger(__name__)

RemoteCall = Callable[..., Awaitable[Any]]


async def _call_in_thread(fn: Callable[..., Any], *args: Any) -> Any:
    return await asyncio.to_thread(fn, *args)


@dataclass(frozen=True)
class SyncReport:
    attempted: int = 0
    confirmed: int = 0
    dead_lettered: int = 0
    halted_on: Optional[MarkKey] = None
    cancelled: bool = False
    error: Optional[str] = None

    @property
    def halted(self) -> bool:
        return self.halted_on is not None


class SyncEngine:
    """Drains the outbox to the remote store.

    Delivery is at-least-once. The remote upsert is idempotent on the natural
    key, so a crash between a confirmed upsert and the local removal is
    harmless. Only one pass runs at a time; triggers that arrive during a pass
    are coalesced into a single follow-up pass.

    All methods must run on the event loop thread that owns the outbox.
    """

    def __init__(
        self,
        outbox: OfflineOutbox,
        gateway: RemoteGateway,
        *,
        backoff: Optional[BackoffPolicy] = None,
        publisher: Optional[SyncStatusPublisher] = None,
        max_attempts_warning: int = DEFAULT_MAX_ATTEMPTS_WARNING,
        clock: Callable[[], datetime] = now_local,
        call_remote: RemoteCall = _call_in_thread,
    ):
        self._outbox = outbox
        self._gateway = gateway
        self._backoff = backoff or BackoffPolicy()
        self._publisher = publisher or SyncStatusPublisher()
        self._max_attempts_warning = int(max_attempts_warning)
        self._clock = clock
        self._call_remote = call_remote

        self._task: Optional[asyncio.Task] = None
        self._rerun = False
        self._cancel_requested = False
        self._failures = 0
        self._next_attempt_at: Optional[datetime] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._online: Optional[bool] = None
        self._last_error: Optional[str] = None
        self._last_synced_at: Optional[datetime] = None
        self.passes = 0

    @property
    def publisher(self) -> SyncStatusPublisher:
        return self._publisher

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def next_attempt_at(self) -> Optional[datetime]:
        return self._next_attempt_at

    # Triggers ----------------------------------------------------------------

    def trigger(self, *, force: bool = False) -> Optional[asyncio.Task]:
        """Start a pass, or ask the running one to go again when it finishes.

        Automatic triggers inside the backoff window are dropped, the
        scheduled retry covers them. ``force`` (manual "sync now") skips the
        window.
        """

        if self.is_running:
            self._rerun = True
            return self._task

        if not force and self._next_attempt_at is not None and self._clock() < self._next_attempt_at:
            logger.debug("Sync trigger ignored until %s (backoff)", self._next_attempt_at.isoformat())
            return None

        self._cancel_requested = False
        self._task = asyncio.get_running_loop().create_task(self._drain())
        return self._task

    async def flush(self) -> Optional[SyncReport]:
        """Manual sync: run now (ignoring backoff) and wait for the result."""

        task = self.trigger(force=True)
        if task is None:
            return None
        return await task

    def request_cancel(self) -> None:
        """Stop after the attempt in flight. Never interrupts an attempt."""

        self._cancel_requested = True
        self._cancel_retry()

    async def stop(self) -> None:
        self.request_cancel()
        if self._task is not None and not self._task.done():
            await self._task

    def note_connectivity(self, online: bool) -> None:
        self._online = online
        self.publish_status()

    # Passes ------------------------------------------------------------------

    async def _drain(self) -> SyncReport:
        report = SyncReport()
        try:
            while True:
                self._rerun = False
                self.publish_status(running=True)
                report = await self.run_pass()
                if not self._rerun or self._cancel_requested or report.halted:
                    break
                logger.debug("Coalesced sync trigger, running another pass")
        finally:
            self.publish_status(running=False)
        return report

    async def run_pass(self) -> SyncReport:
        """One pass over a snapshot of the queue, oldest first."""

        self.passes += 1
        snapshot = self._outbox.list_pending()
        attempted = confirmed = dead_lettered = 0
        error: Optional[str] = None

        for mutation in snapshot:
            if self._cancel_requested:
                logger.info("Sync pass cancelled after %d/%d entries", attempted, len(snapshot))
                return SyncReport(attempted, confirmed, dead_lettered, cancelled=True, error=error)

            mark = mutation.mark
            attempted += 1
            try:
                await self._call_remote(self._gateway.upsert_attendance, mark)
            except PermanentSyncError as e:
                if self._outbox.dead_letter(mark.key, str(e), recorded_at=mark.recorded_at) is None:
                    logger.info("Remote store rejected %s, superseded by a newer local edit: %s", mark.key.as_str(), e)
                    continue
                error = str(e)
                dead_lettered += 1
                logger.error("Remote store rejected %s, moved to dead letters: %s", mark.key.as_str(), e)
                continue
            except Exception as e:
                if isinstance(e, TransientSyncError):
                    logger.warning("Transient sync failure on %s: %s", mark.key.as_str(), e)
                else:
                    logger.exception("Unexpected error syncing %s, keeping it queued", mark.key.as_str())
                error = str(e) or e.__class__.__name__
                attempts = self._outbox.record_attempt(mark.key, recorded_at=mark.recorded_at)
                if attempts >= self._max_attempts_warning:
                    logger.warning("%s still unsynced after %d attempts", mark.key.as_str(), attempts)
                self._schedule_retry(error)
                return SyncReport(attempted, confirmed, dead_lettered, halted_on=mark.key, error=error)

            self._outbox.remove(mark.key, recorded_at=mark.recorded_at)
            self._outbox.advance_cursor(mark.class_id, mark.recorded_at)
            confirmed += 1

        self._failures = 0
        self._next_attempt_at = None
        self._cancel_retry()
        self._last_error = error
        if confirmed:
            self._last_synced_at = self._clock()
        logger.info("Sync pass done: %d confirmed, %d dead-lettered", confirmed, dead_lettered)
        return SyncReport(attempted, confirmed, dead_lettered, error=error)

    # Retry -------------------------------------------------------------------

    def _schedule_retry(self, error: str) -> None:
        self._failures += 1
        self._last_error = error
        delay = self._backoff.delay(self._failures)
        self._next_attempt_at = self._clock() + timedelta(seconds=delay)

        self._cancel_retry()
        if not self._cancel_requested:
            loop = asyncio.get_running_loop()
            self._retry_handle = loop.call_later(delay, self._retry)
        logger.info("Next sync attempt in %.1fs (failure #%d)", delay, self._failures)

    def _retry(self) -> None:
        self._retry_handle = None
        self.trigger(force=True)

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    # Status ------------------------------------------------------------------

    def publish_status(self, *, running: Optional[bool] = None) -> SyncStatus:
        pending = self._outbox.list_pending()
        warnings = tuple(
            f"{m.key.as_str()} sem sincronizar após {m.attempts} tentativas"
            for m in pending
            if m.attempts >= self._max_attempts_warning
        )
        status = SyncStatus(
            pending=len(pending),
            dead_lettered=self._outbox.count_dead_letters(),
            running=self.is_running if running is None else running,
            online=self._online,
            last_error=self._last_error,
            last_synced_at=self._last_synced_at,
            next_retry_at=self._next_attempt_at,
            warnings=warnings,
        )
        self._publisher.publish(status)
        return status
