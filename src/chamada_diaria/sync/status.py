from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncStatus:
    """What the UI layer shows about the outbox."""

    pending: int = 0
    dead_lettered: int = 0
    running: bool = False
    online: Optional[bool] = None
    last_error: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    next_retry_at: Optional[datetime] = None
    warnings: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        data = asdict(self)
        for k in ("last_synced_at", "next_retry_at"):
            data[k] = data[k].isoformat() if data[k] else None
        data["warnings"] = list(self.warnings)
        return data


Subscriber = Callable[[SyncStatus], None]


class SyncStatusPublisher:
    """Observable holding the latest SyncStatus."""

    def __init__(self, initial: Optional[SyncStatus] = None):
        self._current = initial or SyncStatus()
        self._subscribers: List[Subscriber] = []

    @property
    def current(self) -> SyncStatus:
        return self._current

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. It is called immediately with the current value.

        Returns a function that unsubscribes.
        """

        self._subscribers.append(callback)
        self._notify(callback, self._current)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, status: SyncStatus) -> None:
        self._current = status
        for callback in list(self._subscribers):
            self._notify(callback, status)

    @staticmethod
    def _notify(callback: Subscriber, status: SyncStatus) -> None:
        try:
            callback(status)
        except Exception:
            logger.exception("Sync status subscriber failed")
