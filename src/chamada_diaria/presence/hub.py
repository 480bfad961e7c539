from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..common.datetime_utils import now_local
from ..core.constants import GLOBAL_PRESENCE_ROOM, PRESENCE_TTL_SECONDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PresenceEntry:
    user_id: str
    role: Optional[str]
    online_at: datetime
    last_seen: datetime

    def to_dict(self) -> dict:
        return {"user_id": self.user_id, "role": self.role, "online_at": self.online_at.isoformat()}


Listener = Callable[[str, List[PresenceEntry]], None]


def room_for(escola_id: Optional[str]) -> str:
    """Users without a school land in the global room."""

    return f"escola:{escola_id}" if escola_id else GLOBAL_PRESENCE_ROOM


class PresenceHub:
    """Who is online, per school. Ephemeral: nothing is persisted.

    Clients call ``track`` as a heartbeat; entries not refreshed within the
    TTL drop out. Listeners get the room's member list on every join/leave.
    """

    def __init__(self, *, ttl_seconds: float = PRESENCE_TTL_SECONDS, clock: Callable[[], datetime] = now_local):
        self._ttl = timedelta(seconds=float(ttl_seconds))
        self._clock = clock
        self._rooms: Dict[str, Dict[str, PresenceEntry]] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self._lock = threading.Lock()

    def _expire(self, room: str) -> bool:
        members = self._rooms.get(room)
        if not members:
            return False
        cutoff = self._clock() - self._ttl
        stale = [uid for uid, e in members.items() if e.last_seen < cutoff]
        for uid in stale:
            del members[uid]
        self._prune(room)
        return bool(stale)

    def _prune(self, room: str) -> None:
        # Caller holds the lock.
        if not self._rooms.get(room):
            self._rooms.pop(room, None)
        if not self._listeners.get(room):
            self._listeners.pop(room, None)

    @property
    def rooms(self) -> List[str]:
        with self._lock:
            return sorted(set(self._rooms) | set(self._listeners))

    def track(self, *, user_id: str, escola_id: Optional[str], role: Optional[str] = None) -> PresenceEntry:
        room = room_for(escola_id)
        now = self._clock()
        with self._lock:
            changed = self._expire(room)
            members = self._rooms.setdefault(room, {})
            previous = members.get(str(user_id))
            entry = PresenceEntry(
                user_id=str(user_id),
                role=role,
                online_at=previous.online_at if previous else now,
                last_seen=now,
            )
            members[entry.user_id] = entry
            changed = changed or previous is None
        if previous is None:
            logger.debug("Presence: %s joined %s", user_id, room)
        if changed:
            self._broadcast(room)
        return entry

    def untrack(self, *, user_id: str, escola_id: Optional[str]) -> bool:
        room = room_for(escola_id)
        with self._lock:
            removed = self._rooms.get(room, {}).pop(str(user_id), None) is not None
            self._prune(room)
        if removed:
            self._broadcast(room)
        return removed

    def online(self, escola_id: Optional[str]) -> List[PresenceEntry]:
        room = room_for(escola_id)
        with self._lock:
            changed = self._expire(room)
            members = sorted(self._rooms.get(room, {}).values(), key=lambda e: e.online_at)
        if changed:
            self._broadcast(room)
        return members

    def subscribe(self, escola_id: Optional[str], listener: Listener) -> Callable[[], None]:
        room = room_for(escola_id)
        with self._lock:
            self._listeners.setdefault(room, []).append(listener)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._listeners.get(room, [])
                if listener in listeners:
                    listeners.remove(listener)
                self._prune(room)

        return unsubscribe

    def _broadcast(self, room: str) -> None:
        with self._lock:
            members = sorted(self._rooms.get(room, {}).values(), key=lambda e: e.online_at)
            listeners = list(self._listeners.get(room, []))
        for listener in listeners:
            try:
                listener(room, members)
            except Exception:
                logger.exception("Presence listener failed for room %s", room)
