"""Per-connection room operations for the realtime chat channel.

Mutations that touch a room's participant counter or grid slots run under a
per-room ``asyncio.Lock``. The counter is additionally only incremented by a
conditional update guarded by ``max_capacity``, and grid slots are protected by
a unique constraint, so a second process cannot overshoot capacity either.
Rooms and participants carry a version counter that every write bumps, so an
update based on a stale read surfaces as ``Conflict`` instead of clobbering.
"""

from __future__ import annotations

import asyncio
import logging
import time
import weakref
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, ContextManager

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.orm.exc import StaleDataError

from matchfyn.realtime import RealtimeHub, get_hub, room_group

from app.config import Settings, get_settings
from app.core.clock import as_utc, utcnow
from app.core.errors import Conflict, NotFound, PermissionDenied, ValidationFailed
from app.database import get_db_session
from app.models import (
    GRID_SIZE,
    Message,
    MessageReaction,
    MessageType,
    ParticipantRole,
    ParticipantStatus,
    ReactionType,
    Room,
    RoomParticipant,
    RoomStatus,
)
from app.schemas.chat import RoomRead

logger = logging.getLogger(__name__)

SessionScope = Callable[[], ContextManager[Session]]


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Identity of the caller behind one realtime connection."""

    connection_id: str
    user_id: int
    user_name: str
    profile_image_url: str | None = None


def next_free_grid_position(used: set[int]) -> int | None:
    for position in range(1, GRID_SIZE + 1):
        if position not in used:
            return position
    return None


def _iso(value: datetime | None) -> str | None:
    value = as_utc(value)
    return value.isoformat() if value is not None else None


def _room_info(db: Session, room_id: int) -> dict[str, Any]:
    room = db.execute(
        select(Room).where(Room.id == room_id).options(selectinload(Room.participants))
    ).scalar_one()
    return RoomRead.from_room(room).model_dump(mode="json")


def _active_participant(db: Session, room_id: int, user_id: int) -> RoomParticipant | None:
    return db.execute(
        select(RoomParticipant).where(
            RoomParticipant.room_id == room_id,
            RoomParticipant.user_id == user_id,
            RoomParticipant.is_active.is_(True),
        )
    ).scalar_one_or_none()


def _mark_active(participant: RoomParticipant, now: datetime) -> None:
    participant.last_activity_at = now
    if participant.status == ParticipantStatus.AWAY:
        participant.status = ParticipantStatus.ONLINE


def _commit(db: Session, conflict_detail: str) -> None:
    try:
        db.commit()
    except (IntegrityError, StaleDataError) as exc:
        db.rollback()
        raise Conflict(conflict_detail) from exc


class RoomSessionManager:
    """Implements the realtime room operations on top of the store and the hub."""

    def __init__(
        self,
        *,
        hub: RealtimeHub | None = None,
        session_scope: SessionScope = get_db_session,
        settings: Settings | None = None,
    ) -> None:
        self.hub = hub or get_hub()
        self._session_scope = session_scope
        self._settings = settings or get_settings()
        self._room_locks: weakref.WeakValueDictionary[int, asyncio.Lock] = weakref.WeakValueDictionary()

    def room_lock(self, room_id: int) -> asyncio.Lock:
        # Entries vanish once no coroutine holds or waits on the lock.
        lock = self._room_locks.get(room_id)
        if lock is None:
            lock = self._room_locks[room_id] = asyncio.Lock()
        return lock

    async def _in_store(self, fn: Callable[..., Any], *args: Any) -> Any:
        def run() -> Any:
            with self._session_scope() as db:
                return fn(db, *args)

        return await asyncio.to_thread(run)

    # Connection lifecycle -------------------------------------------------

    async def connect(self, ctx: SessionContext, socket: Any) -> None:
        await self.hub.connect(ctx.connection_id, ctx.user_id, ctx.user_name, socket)
        logger.info("User %s connected on %s", ctx.user_id, ctx.connection_id)
        await self.hub.send_to_all("UserOnline", {"user_id": ctx.user_id, "user_name": ctx.user_name})

    async def disconnect(self, ctx: SessionContext) -> list[int]:
        """Close every active participation of the user and announce the departure."""

        await self.hub.disconnect(ctx.connection_id)
        room_ids: list[int] = await self._in_store(self._active_room_ids, ctx.user_id)
        left: list[int] = []
        for room_id in room_ids:
            async with self.room_lock(room_id):
                minutes = await self._in_store(self._close_participation, room_id, ctx.user_id, utcnow())
            if minutes is None:
                continue
            left.append(room_id)
            await self.hub.send_to_group(
                room_group(room_id),
                "UserLeftRoom",
                {"user_id": ctx.user_id, "user_name": ctx.user_name, "message": "User disconnected"},
            )
        logger.info("User %s disconnected from %s", ctx.user_id, ctx.connection_id)
        await self.hub.send_to_all("UserOffline", {"user_id": ctx.user_id, "user_name": ctx.user_name})
        return left

    @staticmethod
    def _active_room_ids(db: Session, user_id: int) -> list[int]:
        return list(
            db.execute(
                select(RoomParticipant.room_id).where(
                    RoomParticipant.user_id == user_id,
                    RoomParticipant.is_active.is_(True),
                )
            ).scalars()
        )

    @staticmethod
    def _close_participation(db: Session, room_id: int, user_id: int, now: datetime) -> int | None:
        """Soft-close the user's active row in a room; returns minutes spent or ``None``."""

        participant = _active_participant(db, room_id, user_id)
        if participant is None:
            return None
        session_minutes = int((now - as_utc(participant.joined_at)).total_seconds() // 60)
        participant.total_time_minutes = (participant.total_time_minutes or 0) + max(session_minutes, 0)
        participant.deactivate(now)
        db.execute(
            update(Room)
            .where(Room.id == room_id, Room.current_participants > 0)
            .values(
                current_participants=Room.current_participants - 1,
                updated_at=now,
                version=Room.version + 1,
            )
        )
        _commit(db, "Room changed concurrently, please retry")
        return session_minutes

    # Room membership ------------------------------------------------------

    async def join_room(self, ctx: SessionContext, room_id: int) -> dict[str, Any]:
        async with self.room_lock(room_id):
            room_info = await self._in_store(self._join, ctx, room_id, utcnow())

        await self.hub.add_to_group(ctx.connection_id, room_group(room_id))
        await self.hub.send_to_group(
            room_group(room_id),
            "UserJoinedRoom",
            {
                "user_id": ctx.user_id,
                "user_name": ctx.user_name,
                "room_info": room_info,
                "message": f"{ctx.user_name} joined the room!",
            },
        )
        await self.hub.send_to_connection(ctx.connection_id, "JoinedRoom", room_info)
        await self.add_system_message(room_id, f"{ctx.user_name} joined the room", MessageType.JOIN)
        logger.info("User %s joined room %s", ctx.user_id, room_id)
        return room_info

    def _join(self, db: Session, ctx: SessionContext, room_id: int, now: datetime) -> dict[str, Any]:
        room = db.get(Room, room_id)
        if room is None or not room.is_active or room.status != RoomStatus.ACTIVE:
            raise NotFound("Room not found or inactive")

        participant = db.execute(
            select(RoomParticipant).where(
                RoomParticipant.room_id == room_id,
                RoomParticipant.user_id == ctx.user_id,
            )
        ).scalar_one_or_none()

        if participant is not None and participant.is_active:
            participant.connection_id = ctx.connection_id
            participant.status = ParticipantStatus.ONLINE
            participant.last_activity_at = now
            _commit(db, "Room changed concurrently, please retry")
            return _room_info(db, room_id)

        reserved = db.execute(
            update(Room)
            .where(
                Room.id == room_id,
                Room.is_active.is_(True),
                Room.current_participants < Room.max_capacity,
            )
            .values(
                current_participants=Room.current_participants + 1,
                updated_at=now,
                version=Room.version + 1,
            )
        )
        if reserved.rowcount == 0:
            db.rollback()
            raise Conflict("Room is full")

        used = set(
            db.execute(
                select(RoomParticipant.grid_position).where(
                    RoomParticipant.room_id == room_id,
                    RoomParticipant.is_active.is_(True),
                    RoomParticipant.grid_position.is_not(None),
                )
            ).scalars()
        )
        grid_position = next_free_grid_position(used)
        role = ParticipantRole.OWNER if room.created_by_user_id == ctx.user_id else ParticipantRole.MEMBER

        if participant is None:
            participant = RoomParticipant(room_id=room_id, user_id=ctx.user_id, role=role)
            db.add(participant)
        participant.display_name = ctx.user_name
        participant.profile_image_url = ctx.profile_image_url
        participant.connection_id = ctx.connection_id
        participant.status = ParticipantStatus.ONLINE
        participant.grid_position = grid_position
        participant.is_active = True
        participant.is_microphone_enabled = False
        participant.is_speaking = False
        participant.joined_at = now
        participant.last_activity_at = now
        participant.left_at = None

        _commit(db, "Could not reserve a seat in the room")
        return _room_info(db, room_id)

    async def leave_room(self, ctx: SessionContext, room_id: int) -> bool:
        async with self.room_lock(room_id):
            minutes = await self._in_store(self._close_participation, room_id, ctx.user_id, utcnow())
        if minutes is None:
            return False

        await self.hub.remove_from_group(ctx.connection_id, room_group(room_id))
        await self.hub.send_to_group(
            room_group(room_id),
            "UserLeftRoom",
            {
                "user_id": ctx.user_id,
                "user_name": ctx.user_name,
                "message": f"{ctx.user_name} left the room",
            },
        )
        await self.add_system_message(room_id, f"{ctx.user_name} left the room", MessageType.LEAVE)
        logger.info("User %s left room %s after %d minute(s)", ctx.user_id, room_id, minutes)
        return True

    # Messaging ------------------------------------------------------------

    async def send_message(
        self,
        ctx: SessionContext,
        room_id: int,
        content: str,
        message_type: str = MessageType.TEXT.value,
    ) -> dict[str, Any]:
        text = (content or "").strip()
        if not text:
            raise ValidationFailed("Message content cannot be empty")
        if len(text) > self._settings.chat_message_max_length:
            raise ValidationFailed(
                f"Message exceeds {self._settings.chat_message_max_length} characters"
            )
        try:
            kind = MessageType(message_type)
        except ValueError:
            raise ValidationFailed(f"Unsupported message type: {message_type}") from None

        payload = await self._in_store(self._store_message, ctx, room_id, text, kind, utcnow())
        payload["timestamp"] = int(time.time() * 1000)
        await self.hub.send_to_group(room_group(room_id), "NewMessage", payload)
        logger.info("Message sent in room %s by user %s", room_id, ctx.user_id)
        return payload

    @staticmethod
    def _store_message(
        db: Session,
        ctx: SessionContext,
        room_id: int,
        content: str,
        kind: MessageType,
        now: datetime,
    ) -> dict[str, Any]:
        participant = _active_participant(db, room_id, ctx.user_id)
        if participant is None:
            raise PermissionDenied("You are not in this room")
        message = Message(
            room_id=room_id,
            sender_id=participant.id,
            content=content,
            message_type=kind,
            created_at=now,
        )
        db.add(message)
        _mark_active(participant, now)
        _commit(db, "Room changed concurrently, please retry")
        return {
            "id": message.id,
            "room_id": room_id,
            "sender_id": participant.id,
            "sender_user_id": ctx.user_id,
            "sender_name": ctx.user_name,
            "sender_profile_image": participant.profile_image_url,
            "content": content,
            "message_type": kind.value,
            "created_at": _iso(now),
        }

    async def react_to_message(self, ctx: SessionContext, message_id: int, reaction_type: str) -> dict[str, Any]:
        try:
            reaction = ReactionType(reaction_type)
        except ValueError:
            raise ValidationFailed(f"Unsupported reaction type: {reaction_type}") from None

        room_id, payload = await self._in_store(self._toggle_reaction, ctx.user_id, message_id, reaction)
        await self.hub.send_to_group(room_group(room_id), "MessageReactionUpdate", payload)
        logger.info(
            "Reaction %s on message %s by user %s (%s)",
            reaction.value,
            message_id,
            ctx.user_id,
            "added" if payload["is_added"] else "removed",
        )
        return payload

    @staticmethod
    def _toggle_reaction(
        db: Session, user_id: int, message_id: int, reaction: ReactionType
    ) -> tuple[int, dict[str, Any]]:
        message = db.get(Message, message_id)
        if message is None or message.is_deleted:
            raise NotFound("Message not found")

        existing = db.execute(
            select(MessageReaction).where(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
                MessageReaction.reaction_type == reaction,
            )
        ).scalar_one_or_none()
        if existing is not None:
            db.delete(existing)
        else:
            db.add(
                MessageReaction(
                    message_id=message_id,
                    user_id=user_id,
                    reaction_type=reaction,
                    emoji=reaction.emoji,
                    created_at=utcnow(),
                )
            )
        _commit(db, "Reaction changed concurrently, please retry")

        rows = db.execute(
            select(MessageReaction.reaction_type, func.count(MessageReaction.id))
            .where(MessageReaction.message_id == message_id)
            .group_by(MessageReaction.reaction_type)
        ).all()
        counts = [
            {"reaction_type": reaction_type.value, "count": int(count)}
            for reaction_type, count in sorted(rows, key=lambda row: row[0].value)
        ]
        return message.room_id, {
            "message_id": message_id,
            "reaction_type": reaction.value,
            "user_id": user_id,
            "reaction_counts": counts,
            "is_added": existing is None,
        }

    # Voice ----------------------------------------------------------------

    async def toggle_microphone(self, ctx: SessionContext, room_id: int, is_enabled: bool) -> dict[str, Any]:
        participant_id = await self._in_store(
            self._update_participant, room_id, ctx.user_id, {"is_microphone_enabled": bool(is_enabled)}
        )
        payload = {"user_id": ctx.user_id, "is_enabled": bool(is_enabled), "participant_id": participant_id}
        await self.hub.send_to_group(room_group(room_id), "MicrophoneToggled", payload)
        logger.info("User %s toggled microphone to %s in room %s", ctx.user_id, is_enabled, room_id)
        return payload

    async def update_speaking_status(self, ctx: SessionContext, room_id: int, is_speaking: bool) -> dict[str, Any]:
        status = ParticipantStatus.SPEAKING if is_speaking else ParticipantStatus.ONLINE
        participant_id = await self._in_store(
            self._update_participant,
            room_id,
            ctx.user_id,
            {"is_speaking": bool(is_speaking), "status": status},
        )
        payload = {"user_id": ctx.user_id, "is_speaking": bool(is_speaking), "participant_id": participant_id}
        await self.hub.send_to_group(room_group(room_id), "SpeakingStatusUpdate", payload)
        return payload

    @staticmethod
    def _update_participant(db: Session, room_id: int, user_id: int, changes: dict[str, Any]) -> int:
        participant = _active_participant(db, room_id, user_id)
        if participant is None:
            raise PermissionDenied("You are not in this room")
        _mark_active(participant, utcnow())
        for name, value in changes.items():
            setattr(participant, name, value)
        _commit(db, "Participant changed concurrently, please retry")
        return participant.id

    # System messages ------------------------------------------------------

    async def add_system_message(self, room_id: int, content: str, kind: MessageType) -> dict[str, Any] | None:
        try:
            payload = await self._in_store(self._store_system_message, room_id, content, kind, utcnow())
        except Exception:
            logger.exception("Error adding system message to room %s", room_id)
            return None
        await self.hub.send_to_group(room_group(room_id), "SystemMessage", payload)
        return payload

    @staticmethod
    def _store_system_message(
        db: Session, room_id: int, content: str, kind: MessageType, now: datetime
    ) -> dict[str, Any]:
        message = Message(room_id=room_id, sender_id=None, content=content, message_type=kind, created_at=now)
        db.add(message)
        db.commit()
        return {
            "id": message.id,
            "room_id": room_id,
            "sender_id": 0,
            "content": content,
            "message_type": kind.value,
            "created_at": _iso(now),
        }


room_sessions = RoomSessionManager()


def get_room_sessions() -> RoomSessionManager:
    return room_sessions
