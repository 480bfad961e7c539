from __future__ import annotations

import random
from datetime import date, datetime

import pytest

from chamada_diaria.chamada.model import ChamadaSession, MarkKey
from chamada_diaria.core.constants import PENDING_KEY
from chamada_diaria.core.enums import PresencaStatus
from chamada_diaria.offline.kv_store import InMemoryKeyValueStore, SQLiteKeyValueStore
from chamada_diaria.offline.outbox import OfflineOutbox

from fakes import make_mark


def test_replace_before_sync_keeps_single_entry_with_last_value(outbox):
    outbox.enqueue(make_mark(present=True))
    outbox.enqueue(make_mark(present=False, recorded_at=datetime(2024, 5, 1, 8, 5)))

    pending = outbox.list_pending()
    assert len(pending) == 1
    assert pending[0].mark.present is False


def test_random_enqueue_sequences_never_duplicate_keys(outbox, fixed_now):
    rnd = random.Random(42)
    last_value = {}
    for i in range(200):
        sid = f"s{rnd.randint(1, 8)}"
        day = date(2024, 5, rnd.randint(1, 3))
        present = rnd.choice([True, False])
        fixed_now.advance(seconds=1)
        mark = make_mark(sid, "c1", day, present=present, recorded_at=fixed_now())
        outbox.enqueue(mark)
        last_value[mark.key] = present

    pending = outbox.list_pending()
    keys = [m.key for m in pending]
    assert len(keys) == len(set(keys)) == len(last_value)
    assert {m.key: m.mark.present for m in pending} == last_value


def test_replace_keeps_queue_position_and_resets_attempts(outbox, fixed_now):
    outbox.enqueue(make_mark("s1"))
    fixed_now.advance(minutes=1)
    outbox.enqueue(make_mark("s2"))
    outbox.record_attempt(MarkKey("s1", "c1", date(2024, 5, 1)))

    fixed_now.advance(minutes=1)
    outbox.enqueue(make_mark("s1", present=True))

    pending = outbox.list_pending()
    assert [m.mark.student_id for m in pending] == ["s1", "s2"]
    assert pending[0].attempts == 0
    assert pending[0].first_queued_at == datetime(2024, 5, 1, 8, 0)


def test_list_pending_is_oldest_first(outbox, fixed_now):
    for sid in ["s3", "s1", "s2"]:
        outbox.enqueue(make_mark(sid))
        fixed_now.advance(seconds=30)

    assert [m.mark.student_id for m in outbox.list_pending()] == ["s3", "s1", "s2"]


def test_remove_is_idempotent(outbox):
    mark = make_mark()
    outbox.enqueue(mark)

    assert outbox.remove(mark.key) is True
    assert outbox.remove(mark.key) is False
    assert outbox.list_pending() == []


def test_remove_with_version_keeps_newer_edit(outbox):
    old = make_mark(present=True)
    outbox.enqueue(old)
    newer = make_mark(present=False, recorded_at=datetime(2024, 5, 1, 9, 0))
    outbox.enqueue(newer)

    assert outbox.remove(old.key, recorded_at=old.recorded_at) is False
    assert outbox.get_pending(old.key).mark == newer


def test_record_attempt_counts_up(outbox):
    mark = make_mark()
    outbox.enqueue(mark)

    assert outbox.record_attempt(mark.key) == 1
    assert outbox.record_attempt(mark.key) == 2
    assert outbox.record_attempt(MarkKey("nobody", "c1", date(2024, 5, 1))) == 0


def test_dead_letter_moves_entry_out_of_queue(outbox):
    mark = make_mark()
    outbox.enqueue(mark)

    letter = outbox.dead_letter(mark.key, "23503: turma não existe")

    assert letter is not None
    assert letter.mutation.attempts == 1
    assert outbox.list_pending() == []
    assert [d.key for d in outbox.list_dead_letters()] == [mark.key]
    assert outbox.count_dead_letters() == 1


def test_requeue_and_discard_dead_letters(outbox):
    a, b = make_mark("s1"), make_mark("s2")
    outbox.enqueue(a)
    outbox.enqueue(b)
    outbox.dead_letter(a.key, "x")
    outbox.dead_letter(b.key, "y")

    requeued = outbox.requeue_dead_letter(a.key)
    assert requeued is not None and requeued.attempts == 0
    assert [m.key for m in outbox.list_pending()] == [a.key]

    assert outbox.discard_dead_letter(b.key) is True
    assert outbox.discard_dead_letter(b.key) is False
    assert outbox.list_dead_letters() == []


class PendingWriteFails(InMemoryKeyValueStore):
    def __init__(self):
        super().__init__()
        self.fail_pending = False

    def set(self, key, value):
        if self.fail_pending and key == PENDING_KEY:
            raise OSError("disk full")
        super().set(key, value)


def test_failed_requeue_keeps_the_dead_letter(fixed_now):
    store = PendingWriteFails()
    outbox = OfflineOutbox(store, clock=fixed_now)
    mark = make_mark()
    outbox.enqueue(mark)
    outbox.dead_letter(mark.key, "23503")

    store.fail_pending = True
    with pytest.raises(OSError):
        outbox.requeue_dead_letter(mark.key)

    assert [d.key for d in outbox.list_dead_letters()] == [mark.key]


def test_requeue_keeps_newer_queued_edit(outbox):
    old = make_mark(present=False)
    outbox.enqueue(old)
    outbox.dead_letter(old.key, "23503")
    newer = make_mark(present=True, recorded_at=datetime(2024, 5, 1, 9, 0))
    outbox.enqueue(newer)

    requeued = outbox.requeue_dead_letter(old.key)

    assert requeued.mark == newer
    assert [m.mark for m in outbox.list_pending()] == [newer]
    assert outbox.list_dead_letters() == []


def test_sessions_are_stored_per_class(outbox):
    s1 = ChamadaSession("c1", "e1", date(2024, 5, 1), {"s1": PresencaStatus.FALTA})
    s2 = ChamadaSession("c2", "e1", date(2024, 5, 1), {"s9": PresencaStatus.UNSET})
    outbox.save_session(s1)
    outbox.save_session(s2)

    assert outbox.load_last_session("c1") == s1
    outbox.clear_session("c1")
    assert outbox.load_last_session("c1") is None
    assert outbox.load_last_session("c2") == s2


def test_cursor_only_moves_forward(outbox):
    outbox.advance_cursor("c1", datetime(2024, 5, 1, 9, 0))
    outbox.advance_cursor("c1", datetime(2024, 5, 1, 8, 0))

    assert outbox.cursor() == {"c1": datetime(2024, 5, 1, 9, 0)}


def test_invalidate_keeps_pending_and_dead_letters(outbox):
    a, b = make_mark("s1"), make_mark("s2")
    outbox.enqueue(a)
    outbox.enqueue(b)
    outbox.dead_letter(b.key, "rejeitado")
    outbox.advance_cursor("c1", datetime(2024, 5, 1, 9, 0))
    outbox.save_session(ChamadaSession("c1", "e1", date(2024, 5, 1), {}))
    outbox.save_reference_cache({"school_id": "e1"})

    outbox.invalidate()

    assert [m.key for m in outbox.list_pending()] == [a.key]
    assert outbox.count_dead_letters() == 1
    assert outbox.cursor() == {}
    assert outbox.load_last_session("c1") is None
    assert outbox.load_reference_cache() is None


def test_sqlite_store_survives_restart(tmp_path, fixed_now):
    path = tmp_path / "device" / "outbox.sqlite3"
    first = OfflineOutbox(SQLiteKeyValueStore(path), clock=fixed_now)
    first.enqueue(make_mark("s1"))
    first.enqueue(make_mark("s2"))

    reopened = OfflineOutbox(SQLiteKeyValueStore(path), clock=fixed_now)

    assert [m.mark.student_id for m in reopened.list_pending()] == ["s1", "s2"]
