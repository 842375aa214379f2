"""Chat room endpoints: listing, details, creation and message history."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_user
from app.config import get_settings
from app.core.clock import utcnow
from app.database import get_db
from app.models import Message, Room, RoomParticipant, RoomStatus, RoomType, User
from app.schemas import (
    MessageHistory,
    MessageRead,
    MyRoomRead,
    Pagination,
    ParticipantRead,
    RoomCreate,
    RoomDetail,
    RoomList,
    RoomRead,
)
from app.services.room_lifecycle import build_room

router = APIRouter(prefix="/chat", tags=["chat"])
settings = get_settings()
logger = logging.getLogger(__name__)

RECENT_MESSAGES_LIMIT = 50


def _message_options():
    return (
        selectinload(Message.sender),
        selectinload(Message.reactions),
    )


def _get_active_room(room_id: int, db: Session) -> Room:
    room = db.execute(
        select(Room).where(Room.id == room_id).options(selectinload(Room.participants))
    ).scalar_one_or_none()
    if room is None or not room.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Room not found")
    return room


@router.get("/rooms", response_model=RoomList)
def list_rooms(
    room_type: RoomType | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> RoomList:
    """Active rooms, newest first."""

    filters = [Room.is_active.is_(True), Room.status == RoomStatus.ACTIVE]
    if room_type is not None:
        filters.append(Room.room_type == room_type)

    total_count = int(db.execute(select(func.count(Room.id)).where(*filters)).scalar_one())
    rooms = db.execute(
        select(Room)
        .where(*filters)
        .options(selectinload(Room.participants))
        .order_by(Room.created_at.desc(), Room.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).scalars()
    return RoomList(
        items=[RoomRead.from_room(room) for room in rooms],
        pagination=Pagination.build(page, page_size, total_count),
    )


@router.get("/rooms/my-rooms", response_model=list[MyRoomRead])
def list_my_rooms(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[MyRoomRead]:
    """The caller's active participations in active rooms, most recently active first."""

    participants = db.execute(
        select(RoomParticipant)
        .join(Room, Room.id == RoomParticipant.room_id)
        .where(
            RoomParticipant.user_id == current_user.id,
            RoomParticipant.is_active.is_(True),
            Room.is_active.is_(True),
        )
        .options(selectinload(RoomParticipant.room).selectinload(Room.participants))
        .order_by(RoomParticipant.last_activity_at.desc(), RoomParticipant.id.desc())
    ).scalars()
    return [
        MyRoomRead(
            participant=ParticipantRead.model_validate(participant),
            room=RoomRead.from_room(participant.room),
        )
        for participant in participants
    ]


@router.get("/rooms/{room_id}", response_model=RoomDetail)
def read_room(
    room_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> RoomDetail:
    room = _get_active_room(room_id, db)
    recent = db.execute(
        select(Message)
        .where(Message.room_id == room_id, Message.is_deleted.is_(False))
        .options(*_message_options())
        .order_by(Message.created_at.desc(), Message.id.desc())
        .limit(RECENT_MESSAGES_LIMIT)
    ).scalars()
    messages = [MessageRead.from_message(message) for message in recent]
    messages.reverse()
    return RoomDetail(**RoomRead.from_room(room).model_dump(), recent_messages=messages)


@router.post("/rooms", response_model=RoomRead, status_code=status.HTTP_201_CREATED)
def create_room(
    payload: RoomCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> RoomRead:
    room = build_room(
        settings,
        payload.room_type,
        name=payload.name,
        now=utcnow(),
        description=payload.description,
        gender_filter=payload.gender_filter,
        min_age=payload.min_age,
        max_age=payload.max_age,
        max_capacity=payload.max_capacity,
        duration_minutes=payload.duration_minutes,
        created_by_user_id=current_user.id,
        is_premium=payload.is_premium,
        premium_price=payload.premium_price,
    )
    db.add(room)
    db.commit()
    db.refresh(room)
    logger.info("User %s created %s room %s", current_user.id, room.room_type.value, room.id)
    return RoomRead.from_room(room)


@router.get("/rooms/{room_id}/messages", response_model=MessageHistory)
def read_room_messages(
    room_id: int,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.chat_history_default_limit, ge=1, le=settings.chat_history_max_limit),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MessageHistory:
    """Message history, newest page first, each page in chronological order."""

    participated = db.execute(
        select(RoomParticipant.id).where(
            RoomParticipant.room_id == room_id,
            RoomParticipant.user_id == current_user.id,
        )
    ).first()
    if participated is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You have not participated in this room",
        )

    filters = (Message.room_id == room_id, Message.is_deleted.is_(False))
    total_count = int(db.execute(select(func.count(Message.id)).where(*filters)).scalar_one())
    page_items = db.execute(
        select(Message)
        .where(*filters)
        .options(*_message_options())
        .order_by(Message.created_at.desc(), Message.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    ).scalars()
    items = [MessageRead.from_message(message) for message in page_items]
    items.reverse()
    return MessageHistory(
        room_id=room_id,
        items=items,
        pagination=Pagination.build(page, page_size, total_count),
    )
