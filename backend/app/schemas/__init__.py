"""Pydantic schemas for API payloads."""

from .auth import AuthResponse, LoginRequest, LogoutRequest, RefreshRequest, RegisterRequest, Token
from .chat import (
    MessageHistory,
    MessageRead,
    MyRoomRead,
    ParticipantRead,
    ReactionCount,
    RoomCreate,
    RoomDetail,
    RoomList,
    RoomRead,
)
from .common import Pagination
from .matches import MatchCreate, MatchRead, MatchRespond
from .matching import (
    CompatibilityRead,
    CompatibleUser,
    GroupRequest,
    GroupResponse,
    MatchingProfile,
    MatchingStatistics,
    ReactionRequest,
    ReactionResult,
)
from .users import InterestRead, PublicUser, UserRead, UserUpdate

__all__ = [
    "AuthResponse",
    "LoginRequest",
    "LogoutRequest",
    "RefreshRequest",
    "RegisterRequest",
    "Token",
    "MessageHistory",
    "MessageRead",
    "MyRoomRead",
    "ParticipantRead",
    "ReactionCount",
    "RoomCreate",
    "RoomDetail",
    "RoomList",
    "RoomRead",
    "Pagination",
    "MatchCreate",
    "MatchRead",
    "MatchRespond",
    "CompatibilityRead",
    "CompatibleUser",
    "GroupRequest",
    "GroupResponse",
    "MatchingProfile",
    "MatchingStatistics",
    "ReactionRequest",
    "ReactionResult",
    "InterestRead",
    "PublicUser",
    "UserRead",
    "UserUpdate",
]
