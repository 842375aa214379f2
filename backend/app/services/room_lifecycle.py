"""Room lifecycle steps run by the periodic maintenance sweep.

Every step works on the session it is given, commits its own changes and
rolls back before re-raising on failure, so a failing step never leaves
partial state for the next one. Rooms and participants carry a version
counter, so a step that read rows a realtime operation changed meanwhile
fails with ``Conflict`` and is retried on the next sweep.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.config import Settings
from app.core.clock import as_utc
from app.core.errors import Conflict
from app.models import (
    GenderFilter,
    ParticipantRole,
    ParticipantStatus,
    Room,
    RoomParticipant,
    RoomStatus,
    RoomType,
)
from app.monitoring import metrics

logger = logging.getLogger(__name__)

TIMED_ROOM_TYPES = (RoomType.WAITING, RoomType.MATCHING)


def build_room(
    settings: Settings,
    room_type: RoomType,
    *,
    name: str,
    now: datetime,
    description: str | None = None,
    gender_filter: GenderFilter | None = None,
    min_age: int | None = None,
    max_age: int | None = None,
    max_capacity: int | None = None,
    duration_minutes: int | None = None,
    created_by_user_id: int | None = None,
    is_premium: bool = False,
    premium_price: float | None = None,
) -> Room:
    """Create an active room, filling capacity and duration from the per-type defaults."""

    defaults = settings.room_defaults_for(room_type)
    capacity = max_capacity if max_capacity is not None else defaults.max_capacity
    duration = duration_minutes if duration_minutes is not None else defaults.duration_minutes
    return Room(
        name=name,
        description=description,
        room_type=room_type,
        status=RoomStatus.ACTIVE,
        max_capacity=capacity,
        current_participants=0,
        created_by_user_id=created_by_user_id,
        gender_filter=gender_filter,
        min_age=min_age,
        max_age=max_age,
        duration_minutes=duration,
        expires_at=now + timedelta(minutes=duration) if duration else None,
        is_premium=is_premium,
        premium_price=premium_price,
        created_at=now,
        updated_at=now,
        is_active=True,
    )


def _system_room(settings: Settings, room_type: RoomType, gender: GenderFilter, now: datetime) -> Room:
    if room_type is RoomType.WAITING:
        name = f"Waiting Room - {gender.display_name}"
        description = f"Waiting room for {gender.display_name.lower()} before the next matching session"
    else:
        name = f"Matching Room - {gender.display_name}"
        description = f"Matching room for {gender.display_name.lower()}, reactions are open"
    return build_room(
        settings,
        room_type,
        name=name,
        description=description,
        now=now,
        gender_filter=gender,
        min_age=settings.default_min_age,
        max_age=settings.default_max_age,
    )


def _count_open_rooms(db: Session, room_type: RoomType, gender: GenderFilter) -> int:
    stmt = select(func.count(Room.id)).where(
        Room.is_active.is_(True),
        Room.room_type == room_type,
        Room.status == RoomStatus.ACTIVE,
        Room.gender_filter == gender,
    )
    return int(db.execute(stmt).scalar_one())


def expire_rooms(db: Session, *, now: datetime, settings: Settings) -> int:
    """Expire timed rooms past ``expires_at`` and close their memberships."""

    try:
        rooms = (
            db.execute(
                select(Room)
                .where(
                    Room.is_active.is_(True),
                    Room.room_type.in_(TIMED_ROOM_TYPES),
                    Room.expires_at.is_not(None),
                    Room.expires_at <= now,
                )
                .options(selectinload(Room.participants))
            )
            .scalars()
            .all()
        )
        for room in rooms:
            for participant in room.active_participants:
                participant.deactivate(now)
            room.status = RoomStatus.EXPIRED
            room.is_active = False
            room.current_participants = 0
            room.updated_at = now
            logger.info("Expired room %s (%s)", room.id, room.room_type.value)

        if rooms:
            db.commit()
            logger.info("Cleaned up %d expired room(s)", len(rooms))
        else:
            db.rollback()
    except StaleDataError as exc:
        db.rollback()
        raise Conflict("Rows changed concurrently during room expiry") from exc
    except Exception:
        db.rollback()
        raise
    return len(rooms)


def handle_inactive_participants(db: Session, *, now: datetime, settings: Settings) -> dict[str, int]:
    """Mark idle participants away and evict the ones idle past the eviction window."""

    idle_threshold = now - timedelta(minutes=settings.participant_idle_minutes)
    eviction_threshold = now - timedelta(minutes=settings.participant_eviction_minutes)
    stats = {"away": 0, "evicted": 0}

    try:
        participants = (
            db.execute(
                select(RoomParticipant)
                .where(
                    RoomParticipant.is_active.is_(True),
                    RoomParticipant.last_activity_at < idle_threshold,
                    RoomParticipant.status != ParticipantStatus.OFFLINE,
                )
            )
            .scalars()
            .all()
        )
        for participant in participants:
            if as_utc(participant.last_activity_at) < eviction_threshold:
                participant.deactivate(now)
                db.execute(
                    update(Room)
                    .where(Room.id == participant.room_id, Room.current_participants > 0)
                    .values(
                        current_participants=Room.current_participants - 1,
                        updated_at=now,
                        version=Room.version + 1,
                    )
                )
                stats["evicted"] += 1
                logger.info(
                    "Removed inactive participant %s (user %s) from room %s",
                    participant.id,
                    participant.user_id,
                    participant.room_id,
                )
            else:
                participant.status = ParticipantStatus.AWAY
                participant.is_microphone_enabled = False
                participant.is_speaking = False
                stats["away"] += 1

        if participants:
            db.commit()
            logger.info(
                "Handled %d inactive participant(s): %d away, %d evicted",
                len(participants),
                stats["away"],
                stats["evicted"],
            )
        else:
            db.rollback()
    except StaleDataError as exc:
        db.rollback()
        raise Conflict("Rows changed concurrently during idle participant handling") from exc
    except Exception:
        db.rollback()
        raise
    return stats


def ensure_waiting_rooms(db: Session, *, now: datetime, settings: Settings) -> int:
    """Top up open waiting rooms to the configured minimum per gender filter."""

    created = 0
    try:
        for gender in GenderFilter:
            missing = settings.waiting_rooms_per_gender - _count_open_rooms(db, RoomType.WAITING, gender)
            for _ in range(max(missing, 0)):
                db.add(_system_room(settings, RoomType.WAITING, gender, now))
                created += 1
                logger.info("Created new waiting room for %s", gender.value)
        if created:
            db.commit()
        else:
            db.rollback()
    except Exception:
        db.rollback()
        raise
    return created


def promote_full_waiting_rooms(db: Session, *, now: datetime, settings: Settings) -> list[tuple[int, int]]:
    """Move every full waiting room's participants into a fresh matching room.

    Returns ``(waiting_room_id, matching_room_id)`` pairs.
    """

    promoted: list[tuple[int, int]] = []
    try:
        waiting_rooms = (
            db.execute(
                select(Room)
                .where(
                    Room.is_active.is_(True),
                    Room.room_type == RoomType.WAITING,
                    Room.status == RoomStatus.ACTIVE,
                    Room.current_participants >= Room.max_capacity,
                )
                .options(selectinload(Room.participants))
                .order_by(Room.id)
                .with_for_update()
            )
            .scalars()
            .all()
        )
        for waiting_room in waiting_rooms:
            gender = waiting_room.gender_filter or GenderFilter.MIXED
            matching_room = build_room(
                settings,
                RoomType.MATCHING,
                name=f"Matching Room - {gender.display_name}",
                description="Timed matching session, reactions are open",
                now=now,
                gender_filter=waiting_room.gender_filter,
                min_age=waiting_room.min_age,
                max_age=waiting_room.max_age,
            )
            db.add(matching_room)
            db.flush()

            moved = 0
            for participant in waiting_room.active_participants:
                grid_position = participant.grid_position
                participant.deactivate(now)
                db.add(
                    RoomParticipant(
                        room_id=matching_room.id,
                        user_id=participant.user_id,
                        display_name=participant.display_name,
                        profile_image_url=participant.profile_image_url,
                        role=ParticipantRole.MEMBER,
                        status=ParticipantStatus.ONLINE,
                        grid_position=grid_position,
                        joined_at=now,
                        last_activity_at=now,
                        is_active=True,
                    )
                )
                moved += 1

            matching_room.current_participants = moved
            waiting_room.status = RoomStatus.CLOSED
            waiting_room.is_active = False
            waiting_room.current_participants = 0
            waiting_room.updated_at = now
            promoted.append((waiting_room.id, matching_room.id))
            logger.info(
                "Promoted waiting room %s to matching room %s with %d participant(s)",
                waiting_room.id,
                matching_room.id,
                moved,
            )

        if promoted:
            db.commit()
        else:
            db.rollback()
    except StaleDataError as exc:
        db.rollback()
        raise Conflict("Rows changed concurrently during waiting room promotion") from exc
    except Exception:
        db.rollback()
        raise
    return promoted


def ensure_matching_rooms(db: Session, *, now: datetime, settings: Settings) -> int:
    """Keep at least the configured number of open matching rooms per gender filter."""

    created = 0
    try:
        for gender in GenderFilter:
            missing = settings.matching_rooms_per_gender - _count_open_rooms(db, RoomType.MATCHING, gender)
            for _ in range(max(missing, 0)):
                db.add(_system_room(settings, RoomType.MATCHING, gender, now))
                created += 1
                logger.info("Created new matching room for %s", gender.value)
        if created:
            db.commit()
        else:
            db.rollback()
    except Exception:
        db.rollback()
        raise
    return created


def monitor_room_health(db: Session, *, now: datetime, settings: Settings) -> dict[str, object]:
    """Log and export room counts, then retire long-empty non-public rooms."""

    try:
        per_type = dict(
            db.execute(
                select(Room.room_type, func.count(Room.id))
                .where(Room.is_active.is_(True))
                .group_by(Room.room_type)
            ).all()
        )
        total_participants = int(
            db.execute(
                select(func.count(RoomParticipant.id)).where(RoomParticipant.is_active.is_(True))
            ).scalar_one()
        )
        total_open_rooms = int(
            db.execute(
                select(func.count(Room.id)).where(
                    Room.is_active.is_(True), Room.status == RoomStatus.ACTIVE
                )
            ).scalar_one()
        )

        logger.info(
            "Room health check: %d active room(s), %d active participant(s)",
            total_open_rooms,
            total_participants,
        )
        for room_type in RoomType:
            count = int(per_type.get(room_type, 0))
            metrics.rooms_active.set(count, room_type=room_type.value)
            if count:
                logger.info("Room type %s: %d", room_type.value, count)
        metrics.room_participants_active.set(total_participants)

        empty_threshold = now - timedelta(minutes=settings.empty_room_timeout_minutes)
        empty_rooms = (
            db.execute(
                select(Room).where(
                    Room.is_active.is_(True),
                    Room.current_participants == 0,
                    Room.updated_at < empty_threshold,
                    Room.room_type != RoomType.PUBLIC,
                )
            )
            .scalars()
            .all()
        )
        for room in empty_rooms:
            room.status = RoomStatus.INACTIVE
            room.is_active = False
            room.updated_at = now
            logger.info("Marked empty room %s as inactive", room.id)

        if empty_rooms:
            db.commit()
        else:
            db.rollback()
    except StaleDataError as exc:
        db.rollback()
        raise Conflict("Rows changed concurrently during empty room retirement") from exc
    except Exception:
        db.rollback()
        raise

    return {
        "rooms_by_type": {room_type.value: int(per_type.get(room_type, 0)) for room_type in RoomType},
        "active_rooms": total_open_rooms,
        "active_participants": total_participants,
        "retired_rooms": len(empty_rooms),
    }
