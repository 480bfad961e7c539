from __future__ import annotations

import pytest

from chamada_diaria.presence.hub import PresenceHub, room_for


@pytest.fixture
def hub(fixed_now):
    return PresenceHub(ttl_seconds=60, clock=fixed_now)


def test_rooms_are_per_school():
    assert room_for("e1") == "escola:e1"
    assert room_for(None) == "global"


def test_track_lists_users_of_the_same_school_only(hub):
    hub.track(user_id="u1", escola_id="e1", role="professor")
    hub.track(user_id="u2", escola_id="e2", role="admin")

    assert [e.user_id for e in hub.online("e1")] == ["u1"]
    assert [e.user_id for e in hub.online("e2")] == ["u2"]


def test_heartbeat_keeps_online_at(hub, fixed_now):
    first = hub.track(user_id="u1", escola_id="e1")
    fixed_now.advance(seconds=30)

    again = hub.track(user_id="u1", escola_id="e1")

    assert again.online_at == first.online_at
    assert again.last_seen == fixed_now()


def test_entries_expire_without_heartbeat(hub, fixed_now):
    hub.track(user_id="u1", escola_id="e1")
    fixed_now.advance(seconds=61)

    assert hub.online("e1") == []


def test_untrack(hub):
    hub.track(user_id="u1", escola_id="e1")

    assert hub.untrack(user_id="u1", escola_id="e1") is True
    assert hub.untrack(user_id="u1", escola_id="e1") is False
    assert hub.online("e1") == []


def test_listeners_get_member_list_on_join_and_leave(hub):
    events = []
    unsubscribe = hub.subscribe("e1", lambda room, members: events.append((room, [m.user_id for m in members])))

    hub.track(user_id="u1", escola_id="e1")
    hub.track(user_id="u1", escola_id="e1")
    hub.track(user_id="u2", escola_id="e1")
    hub.untrack(user_id="u1", escola_id="e1")
    unsubscribe()
    hub.untrack(user_id="u2", escola_id="e1")

    assert events == [
        ("escola:e1", ["u1"]),
        ("escola:e1", ["u1", "u2"]),
        ("escola:e1", ["u2"]),
    ]


def test_failing_listener_does_not_break_tracking(hub):
    def broken(room, members):
        raise RuntimeError("boom")

    hub.subscribe("e1", broken)

    assert hub.track(user_id="u1", escola_id="e1").user_id == "u1"


def test_empty_rooms_are_dropped(hub, fixed_now):
    hub.track(user_id="u1", escola_id="e1")
    hub.track(user_id="u2", escola_id="e2")
    unsubscribe = hub.subscribe("e3", lambda room, members: None)

    hub.untrack(user_id="u1", escola_id="e1")
    fixed_now.advance(seconds=61)
    hub.online("e2")

    assert hub.rooms == ["escola:e3"]
    unsubscribe()
    assert hub.rooms == []
