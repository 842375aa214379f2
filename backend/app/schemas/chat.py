"""Schemas for chat rooms, participants and messages."""

from __future__ import annotations

from collections import Counter
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, constr, field_validator, model_validator

from app.models import (
    GenderFilter,
    Message,
    MessageType,
    ParticipantRole,
    ParticipantStatus,
    Room,
    RoomStatus,
    RoomType,
)
from app.schemas.common import Pagination, UtcDateTime


class ParticipantRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    display_name: str
    profile_image_url: str | None = None
    role: ParticipantRole
    status: ParticipantStatus
    is_microphone_enabled: bool
    is_speaking: bool
    grid_position: int | None = None
    joined_at: UtcDateTime
    last_activity_at: UtcDateTime


class RoomRead(BaseModel):
    """Room with its active participants, ordered by grid position."""

    id: int
    name: str
    description: str | None = None
    room_type: RoomType
    status: RoomStatus
    max_capacity: int
    current_participants: int
    created_by_user_id: int | None = None
    gender_filter: GenderFilter | None = None
    min_age: int | None = None
    max_age: int | None = None
    duration_minutes: int | None = None
    expires_at: UtcDateTime | None = None
    is_premium: bool = False
    premium_price: float | None = None
    created_at: UtcDateTime
    participants: list[ParticipantRead] = Field(default_factory=list)

    @classmethod
    def from_room(cls, room: Room) -> "RoomRead":
        participants = sorted(
            room.active_participants,
            key=lambda item: (item.grid_position is None, item.grid_position or 0, item.id),
        )
        return cls(
            id=room.id,
            name=room.name,
            description=room.description,
            room_type=room.room_type,
            status=room.status,
            max_capacity=room.max_capacity,
            current_participants=room.current_participants,
            created_by_user_id=room.created_by_user_id,
            gender_filter=room.gender_filter,
            min_age=room.min_age,
            max_age=room.max_age,
            duration_minutes=room.duration_minutes,
            expires_at=room.expires_at,
            is_premium=room.is_premium,
            premium_price=float(room.premium_price) if room.premium_price is not None else None,
            created_at=room.created_at,
            participants=[ParticipantRead.model_validate(item) for item in participants],
        )


class ReactionCount(BaseModel):
    reaction_type: str
    count: int


def count_reactions(reaction_types: Iterable[str]) -> list[ReactionCount]:
    counts = Counter(reaction_types)
    return [ReactionCount(reaction_type=name, count=count) for name, count in sorted(counts.items())]


class MessageRead(BaseModel):
    """Chat message; ``sender_id`` is ``0`` for system messages."""

    id: int
    room_id: int
    sender_id: int
    sender_user_id: int | None = None
    sender_name: str | None = None
    sender_profile_image: str | None = None
    content: str
    message_type: MessageType
    reply_to_message_id: int | None = None
    created_at: UtcDateTime
    is_edited: bool = False
    reactions: list[ReactionCount] = Field(default_factory=list)

    @classmethod
    def from_message(cls, message: Message) -> "MessageRead":
        sender = message.sender
        return cls(
            id=message.id,
            room_id=message.room_id,
            sender_id=message.sender_id or 0,
            sender_user_id=sender.user_id if sender is not None else None,
            sender_name=sender.display_name if sender is not None else None,
            sender_profile_image=sender.profile_image_url if sender is not None else None,
            content=message.content,
            message_type=message.message_type,
            reply_to_message_id=message.reply_to_message_id,
            created_at=message.created_at,
            is_edited=message.is_edited,
            reactions=count_reactions(reaction.reaction_type.value for reaction in message.reactions),
        )


class RoomDetail(RoomRead):
    recent_messages: list[MessageRead] = Field(default_factory=list)


class RoomList(BaseModel):
    items: list[RoomRead]
    pagination: Pagination


class MessageHistory(BaseModel):
    room_id: int
    items: list[MessageRead]
    pagination: Pagination


class RoomCreate(BaseModel):
    """Payload for a user-created room; capacity and duration default per room type."""

    name: constr(strip_whitespace=True, min_length=1, max_length=100)
    description: constr(max_length=500) | None = None
    room_type: RoomType = RoomType.PUBLIC
    max_capacity: int | None = Field(default=None, ge=1, le=50)
    gender_filter: GenderFilter | None = None
    min_age: int | None = Field(default=None, ge=18, le=100)
    max_age: int | None = Field(default=None, ge=18, le=100)
    duration_minutes: int | None = Field(default=None, ge=1, le=24 * 60)
    is_premium: bool = False
    premium_price: float | None = Field(default=None, ge=0)

    @field_validator("room_type", mode="before")
    @classmethod
    def normalize_room_type(cls, value):  # type: ignore[override]
        if isinstance(value, str):
            for member in RoomType:
                if member.value.lower() == value.strip().lower():
                    return member
            raise ValueError("Room type must be one of: Waiting, Matching, Private, Public")
        return value

    @model_validator(mode="after")
    def check_age_range(self) -> "RoomCreate":
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("min_age cannot be greater than max_age")
        return self


class MyRoomRead(BaseModel):
    """The caller's active participation in a room."""

    participant: ParticipantRead
    room: RoomRead
