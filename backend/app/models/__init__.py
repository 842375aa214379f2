"""Database models package."""

from .base import Base
from .chat import GRID_SIZE, Message, MessageReaction, Room, RoomParticipant
from .enums import (
    GenderFilter,
    MatchStatus,
    MessageType,
    ParticipantRole,
    ParticipantStatus,
    ReactionType,
    RoomStatus,
    RoomType,
)
from .users import Interest, Match, User, UserInterest

__all__ = [
    "Base",
    "User",
    "Interest",
    "UserInterest",
    "Match",
    "Room",
    "RoomParticipant",
    "Message",
    "MessageReaction",
    "GRID_SIZE",
    "GenderFilter",
    "MatchStatus",
    "MessageType",
    "ParticipantRole",
    "ParticipantStatus",
    "ReactionType",
    "RoomStatus",
    "RoomType",
]
