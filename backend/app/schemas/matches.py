"""Schemas for match requests between users."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.models import MatchStatus
from app.schemas.common import UtcDateTime
from app.schemas.users import PublicUser


class MatchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sender_id: int
    receiver_id: int
    sender: PublicUser
    receiver: PublicUser
    status: MatchStatus
    message: str | None = None
    created_at: UtcDateTime
    responded_at: UtcDateTime | None = None


class MatchCreate(BaseModel):
    receiver_id: int
    message: str | None = Field(default=None, max_length=500)


class MatchRespond(BaseModel):
    status: Literal["accepted", "rejected"]
