from __future__ import annotations

from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from ..chamada.model import AttendanceMark, ChamadaSession, DeadLetter, MarkKey, PendingMutation
from ..common.datetime_utils import now_local, parse_iso_datetime
from ..core.constants import (
    DEAD_LETTER_KEY,
    PENDING_KEY,
    REFERENCE_CACHE_KEY,
    SESSION_KEY,
    SYNC_CURSOR_KEY,
)
from .kv_store import KeyValueStore


class OfflineOutbox:
    """Local durable store: the outbox of one device.

    Owns the persistence of pending mutations, dead letters, in-progress
    sessions and the sync cursor. All methods are synchronous and must be
    called from the single scheduling thread (see ``sync.runtime``).
    """

    def __init__(self, store: KeyValueStore, *, clock: Callable[[], datetime] = now_local):
        self._store = store
        self._clock = clock

    # Pending mutations ------------------------------------------------------

    def _load_pending(self) -> List[PendingMutation]:
        return [PendingMutation.from_dict(d) for d in self._store.get(PENDING_KEY, [])]

    def _save_pending(self, items: Sequence[PendingMutation]) -> None:
        self._store.set(PENDING_KEY, [m.to_dict() for m in items])

    def enqueue(self, mark: AttendanceMark) -> PendingMutation:
        """Queue a mark. A mark for an already queued key replaces it in place."""

        items = self._load_pending()
        for i, existing in enumerate(items):
            if existing.key == mark.key:
                replaced = PendingMutation(mark=mark, attempts=0, first_queued_at=existing.first_queued_at)
                items[i] = replaced
                self._save_pending(items)
                return replaced

        queued = PendingMutation(mark=mark, attempts=0, first_queued_at=self._clock())
        items.append(queued)
        self._save_pending(items)
        return queued

    def list_pending(self) -> List[PendingMutation]:
        # sorted() is stable: ties keep insertion order.
        return sorted(self._load_pending(), key=lambda m: m.first_queued_at)

    def get_pending(self, key: MarkKey) -> Optional[PendingMutation]:
        for item in self._load_pending():
            if item.key == key:
                return item
        return None

    def count_pending(self) -> int:
        return len(self._store.get(PENDING_KEY, []))

    @staticmethod
    def _is_version(item: PendingMutation, recorded_at: Optional[datetime]) -> bool:
        return recorded_at is None or item.mark.recorded_at == recorded_at

    def remove(self, key: MarkKey, *, recorded_at: Optional[datetime] = None) -> bool:
        """Delete a confirmed entry. Missing keys are not an error.

        With ``recorded_at``, only that version of the mark is removed. A newer
        local edit for the same key stays queued.
        """

        items = self._load_pending()
        kept = [m for m in items if not (m.key == key and self._is_version(m, recorded_at))]
        if len(kept) == len(items):
            return False
        self._save_pending(kept)
        return True

    def record_attempt(self, key: MarkKey, *, recorded_at: Optional[datetime] = None) -> int:
        """Bump the delivery attempt counter. Returns the new count (0 if gone)."""

        items = self._load_pending()
        for i, item in enumerate(items):
            if item.key == key and self._is_version(item, recorded_at):
                items[i] = PendingMutation(
                    mark=item.mark,
                    attempts=item.attempts + 1,
                    first_queued_at=item.first_queued_at,
                )
                self._save_pending(items)
                return items[i].attempts
        return 0

    # Dead letters -----------------------------------------------------------

    def _load_dead_letters(self) -> List[DeadLetter]:
        return [DeadLetter.from_dict(d) for d in self._store.get(DEAD_LETTER_KEY, [])]

    def _save_dead_letters(self, items: Sequence[DeadLetter]) -> None:
        self._store.set(DEAD_LETTER_KEY, [d.to_dict() for d in items])

    def dead_letter(self, key: MarkKey, reason: str, *, recorded_at: Optional[datetime] = None) -> Optional[DeadLetter]:
        """Move a pending entry out of the active queue into the dead-letter list."""

        item = self.get_pending(key)
        if item is None or not self._is_version(item, recorded_at):
            return None

        failed = PendingMutation(mark=item.mark, attempts=item.attempts + 1, first_queued_at=item.first_queued_at)
        letter = DeadLetter(mutation=failed, reason=reason, failed_at=self._clock())

        letters = [d for d in self._load_dead_letters() if d.key != key]
        letters.append(letter)
        self._save_dead_letters(letters)
        self.remove(key, recorded_at=recorded_at)
        return letter

    def list_dead_letters(self) -> List[DeadLetter]:
        return sorted(self._load_dead_letters(), key=lambda d: d.failed_at)

    def count_dead_letters(self) -> int:
        return len(self._store.get(DEAD_LETTER_KEY, []))

    def discard_dead_letter(self, key: MarkKey) -> bool:
        letters = self._load_dead_letters()
        kept = [d for d in letters if d.key != key]
        if len(kept) == len(letters):
            return False
        self._save_dead_letters(kept)
        return True

    def requeue_dead_letter(self, key: MarkKey) -> Optional[PendingMutation]:
        """Put a dead-lettered mark back in the queue after manual fixing.

        The pending write happens before the dead letter is dropped, so a
        failure in between leaves the mark in both lists, never in neither.
        A newer queued edit of the same key is kept as is.
        """

        for letter in self._load_dead_letters():
            if letter.key == key:
                queued = self.get_pending(key)
                if queued is None or queued.mark.recorded_at < letter.mutation.mark.recorded_at:
                    queued = self.enqueue(letter.mutation.mark)
                self.discard_dead_letter(key)
                return queued
        return None

    # Sessions ---------------------------------------------------------------

    def save_session(self, session: ChamadaSession) -> None:
        sessions: Dict[str, dict] = self._store.get(SESSION_KEY, {})
        sessions[session.class_id] = session.to_dict()
        self._store.set(SESSION_KEY, sessions)

    def load_last_session(self, class_id: str) -> Optional[ChamadaSession]:
        data = self._store.get(SESSION_KEY, {}).get(str(class_id))
        return ChamadaSession.from_dict(data) if data else None

    def clear_session(self, class_id: str) -> None:
        sessions: Dict[str, dict] = self._store.get(SESSION_KEY, {})
        if sessions.pop(str(class_id), None) is not None:
            self._store.set(SESSION_KEY, sessions)

    # Sync cursor ------------------------------------------------------------

    def cursor(self) -> Dict[str, datetime]:
        raw: Dict[str, str] = self._store.get(SYNC_CURSOR_KEY, {})
        return {class_id: parse_iso_datetime(ts) for class_id, ts in raw.items()}

    def advance_cursor(self, class_id: str, recorded_at: datetime) -> None:
        cursor = self.cursor()
        current = cursor.get(class_id)
        if current is not None and current >= recorded_at:
            return
        cursor[class_id] = recorded_at
        self._store.set(SYNC_CURSOR_KEY, {k: v.isoformat() for k, v in cursor.items()})

    # Reference data cache ---------------------------------------------------

    def load_reference_cache(self) -> Optional[dict]:
        return self._store.get(REFERENCE_CACHE_KEY)

    def save_reference_cache(self, payload: dict) -> None:
        self._store.set(REFERENCE_CACHE_KEY, payload)

    def invalidate(self) -> None:
        """Explicit cache invalidation (school switch, logout).

        Pending and dead-lettered mutations survive: they are never dropped
        without remote confirmation or manual resolution.
        """

        self._store.delete(SYNC_CURSOR_KEY)
        self._store.delete(SESSION_KEY)
        self._store.delete(REFERENCE_CACHE_KEY)
