"""Tests for the room lifecycle steps run by the maintenance worker."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import event, func, select

from matchfyn.realtime import RealtimeHub

from app.config import get_settings
from app.core.errors import Conflict
from app.models import (
    GenderFilter,
    ParticipantStatus,
    Room,
    RoomParticipant,
    RoomStatus,
    RoomType,
)
from app.monitoring import metrics
from app.services.room_lifecycle import (
    build_room,
    ensure_matching_rooms,
    ensure_waiting_rooms,
    expire_rooms,
    handle_inactive_participants,
    monitor_room_health,
    promote_full_waiting_rooms,
)
from app.services.room_sessions import RoomSessionManager, SessionContext

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture()
def settings():
    return get_settings()


def add_room(db_session, settings, room_type: RoomType, *, now: datetime = NOW, **kwargs) -> Room:
    room = build_room(settings, room_type, name=f"{room_type.value} room", now=now, **kwargs)
    db_session.add(room)
    db_session.commit()
    return room


def seat(db_session, room: Room, user_id: int, position: int, *, last_activity_at: datetime = NOW) -> RoomParticipant:
    participant = RoomParticipant(
        room_id=room.id,
        user_id=user_id,
        display_name=f"User {user_id}",
        grid_position=position,
        joined_at=last_activity_at,
        last_activity_at=last_activity_at,
        is_active=True,
        is_microphone_enabled=True,
    )
    db_session.add(participant)
    room.current_participants += 1
    db_session.commit()
    return participant


def active_count(db_session, room_id: int) -> int:
    return int(
        db_session.execute(
            select(func.count(RoomParticipant.id)).where(
                RoomParticipant.room_id == room_id, RoomParticipant.is_active.is_(True)
            )
        ).scalar_one()
    )


def test_build_room_applies_type_defaults(settings):
    waiting = build_room(settings, RoomType.WAITING, name="w", now=NOW)
    private = build_room(settings, RoomType.PRIVATE, name="p", now=NOW)

    assert (waiting.max_capacity, waiting.duration_minutes) == (10, 15)
    assert waiting.expires_at == NOW + timedelta(minutes=15)
    assert private.max_capacity == 4
    assert private.expires_at is None


def test_full_waiting_room_is_promoted(db_session, settings, make_user):
    waiting = add_room(db_session, settings, RoomType.WAITING, gender_filter=GenderFilter.FEMALE)
    users = [make_user() for _ in range(10)]
    for position, user in enumerate(users, start=1):
        seat(db_session, waiting, user.id, position)

    promoted = promote_full_waiting_rooms(db_session, now=NOW, settings=settings)

    assert len(promoted) == 1
    waiting_id, matching_id = promoted[0]
    assert waiting_id == waiting.id

    db_session.expire_all()
    waiting = db_session.get(Room, waiting_id)
    matching = db_session.get(Room, matching_id)
    assert waiting.status == RoomStatus.CLOSED
    assert waiting.is_active is False
    assert waiting.current_participants == 0
    assert active_count(db_session, waiting_id) == 0

    assert matching.room_type == RoomType.MATCHING
    assert matching.gender_filter == GenderFilter.FEMALE
    assert matching.current_participants == 10
    assert active_count(db_session, matching_id) == 10
    moved = {participant.user_id: participant.grid_position for participant in matching.active_participants}
    assert moved == {user.id: position for position, user in enumerate(users, start=1)}

    assert promote_full_waiting_rooms(db_session, now=NOW, settings=settings) == []


def test_partially_filled_waiting_room_stays(db_session, settings):
    waiting = add_room(db_session, settings, RoomType.WAITING, gender_filter=GenderFilter.MALE)
    seat(db_session, waiting, 1, 1)

    assert promote_full_waiting_rooms(db_session, now=NOW, settings=settings) == []
    assert db_session.get(Room, waiting.id).status == RoomStatus.ACTIVE


def test_idle_participants_go_away_then_get_evicted(db_session, settings):
    room = add_room(db_session, settings, RoomType.PUBLIC)
    idle = seat(db_session, room, 1, 1, last_activity_at=NOW - timedelta(minutes=6))
    gone = seat(db_session, room, 2, 2, last_activity_at=NOW - timedelta(minutes=11))
    fresh = seat(db_session, room, 3, 3)

    stats = handle_inactive_participants(db_session, now=NOW, settings=settings)

    assert stats == {"away": 1, "evicted": 1}
    db_session.expire_all()
    idle = db_session.get(RoomParticipant, idle.id)
    gone = db_session.get(RoomParticipant, gone.id)
    assert idle.status == ParticipantStatus.AWAY
    assert idle.is_active is True
    assert idle.is_microphone_enabled is False
    assert gone.is_active is False
    assert gone.grid_position is None
    assert db_session.get(RoomParticipant, fresh.id).status == ParticipantStatus.ONLINE
    room = db_session.get(Room, room.id)
    assert room.current_participants == 2 == active_count(db_session, room.id)


def test_expired_rooms_close_memberships(db_session, settings):
    room = add_room(db_session, settings, RoomType.MATCHING, now=NOW - timedelta(minutes=31))
    seat(db_session, room, 1, 1)
    seat(db_session, room, 2, 2)
    untimed = add_room(db_session, settings, RoomType.PUBLIC, now=NOW - timedelta(days=1))

    assert expire_rooms(db_session, now=NOW, settings=settings) == 1

    db_session.expire_all()
    room = db_session.get(Room, room.id)
    assert room.status == RoomStatus.EXPIRED
    assert room.is_active is False
    assert room.current_participants == 0 == active_count(db_session, room.id)
    assert db_session.get(Room, untimed.id).is_active is True


def test_system_rooms_are_replenished(db_session, settings):
    assert ensure_waiting_rooms(db_session, now=NOW, settings=settings) == 2 * len(GenderFilter)
    assert ensure_matching_rooms(db_session, now=NOW, settings=settings) == len(GenderFilter)
    assert ensure_waiting_rooms(db_session, now=NOW, settings=settings) == 0
    assert ensure_matching_rooms(db_session, now=NOW, settings=settings) == 0

    names = set(db_session.execute(select(Room.name).where(Room.room_type == RoomType.WAITING)).scalars())
    assert names == {"Waiting Room - Men", "Waiting Room - Women", "Waiting Room - Mixed"}


def test_health_check_retires_long_empty_rooms(db_session, settings):
    stale = add_room(db_session, settings, RoomType.PRIVATE, now=NOW - timedelta(minutes=40))
    public = add_room(db_session, settings, RoomType.PUBLIC, now=NOW - timedelta(minutes=40))
    busy = add_room(db_session, settings, RoomType.PRIVATE, now=NOW - timedelta(minutes=40))
    seat(db_session, busy, 1, 1)

    report = monitor_room_health(db_session, now=NOW, settings=settings)

    assert report["retired_rooms"] == 1
    assert report["active_participants"] == 1
    assert report["rooms_by_type"]["Private"] == 2
    assert metrics.rooms_active.value(room_type="Private") == 2
    assert metrics.room_participants_active.value() == 1

    db_session.expire_all()
    stale = db_session.get(Room, stale.id)
    assert stale.status == RoomStatus.INACTIVE
    assert stale.is_active is False
    assert db_session.get(Room, public.id).is_active is True
    assert db_session.get(Room, busy.id).is_active is True


def before_first_flush(session, action) -> None:
    event.listen(session, "before_flush", lambda *_: action(), once=True)


def test_eviction_counts_a_join_that_lands_mid_sweep(file_session_factory, settings):
    with file_session_factory() as db:
        room = add_room(db, settings, RoomType.PUBLIC)
        gone = seat(db, room, 1, 1, last_activity_at=NOW - timedelta(minutes=11))
        seat(db, room, 2, 2)
        room_id, gone_id = room.id, gone.id

    def join_meanwhile() -> None:
        ctx = SessionContext(connection_id="conn-3", user_id=3, user_name="User 3")
        with file_session_factory() as other:
            RoomSessionManager(hub=RealtimeHub(), settings=settings)._join(other, ctx, room_id, NOW)

    with file_session_factory() as db:
        before_first_flush(db, join_meanwhile)
        stats = handle_inactive_participants(db, now=NOW, settings=settings)

    assert stats == {"away": 0, "evicted": 1}
    with file_session_factory() as db:
        assert db.get(RoomParticipant, gone_id).is_active is False
        assert db.get(Room, room_id).current_participants == 2 == active_count(db, room_id)


def test_promotion_backs_off_when_someone_leaves_mid_sweep(file_session_factory, settings):
    with file_session_factory() as db:
        waiting = add_room(db, settings, RoomType.WAITING, gender_filter=GenderFilter.MIXED)
        for position in range(1, 11):
            seat(db, waiting, position, position)
        waiting_id = waiting.id

    def leave_meanwhile() -> None:
        with file_session_factory() as other:
            RoomSessionManager._close_participation(other, waiting_id, 4, NOW)

    with file_session_factory() as db:
        before_first_flush(db, leave_meanwhile)
        with pytest.raises(Conflict):
            promote_full_waiting_rooms(db, now=NOW, settings=settings)

    with file_session_factory() as db:
        waiting = db.get(Room, waiting_id)
        assert waiting.status == RoomStatus.ACTIVE
        assert waiting.current_participants == 9 == active_count(db, waiting_id)
        matching_rooms = db.execute(
            select(func.count(Room.id)).where(Room.room_type == RoomType.MATCHING)
        ).scalar_one()
        assert matching_rooms == 0


def test_away_marking_yields_to_a_concurrent_participant_update(file_session_factory, settings):
    with file_session_factory() as db:
        room = add_room(db, settings, RoomType.PUBLIC)
        idle = seat(db, room, 1, 1, last_activity_at=NOW - timedelta(minutes=6))
        room_id, idle_id = room.id, idle.id

    def speak_meanwhile() -> None:
        with file_session_factory() as other:
            RoomSessionManager._update_participant(
                other, room_id, 1, {"is_speaking": True, "status": ParticipantStatus.SPEAKING}
            )

    with file_session_factory() as db:
        before_first_flush(db, speak_meanwhile)
        with pytest.raises(Conflict):
            handle_inactive_participants(db, now=NOW, settings=settings)

    with file_session_factory() as db:
        participant = db.get(RoomParticipant, idle_id)
        assert participant.status == ParticipantStatus.SPEAKING
        assert participant.is_speaking is True
        assert participant.is_microphone_enabled is True
