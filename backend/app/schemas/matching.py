"""Schemas for the matching endpoints."""

from pydantic import BaseModel, Field

from app.models import GenderFilter
from app.schemas.common import UtcDateTime
from app.schemas.users import PublicUser


class CompatibleUser(BaseModel):
    user: PublicUser
    age: int
    gender: str | None = None
    compatibility_score: float


class CompatibilityRead(BaseModel):
    user_id: int
    target_user_id: int
    compatibility_score: float = Field(..., ge=0, le=1)
    compatibility_level: str


class ReactionRequest(BaseModel):
    target_user_id: int
    is_like: bool


class ReactionResult(BaseModel):
    target_user_id: int
    is_like: bool
    match_id: int | None = None
    match_status: str | None = None
    created: bool


class MatchingProfile(BaseModel):
    user_id: int
    age: int
    gender: str | None = None
    city: str | None = None
    interests: list[str] = Field(default_factory=list)
    total_matches: int
    last_active: UtcDateTime | None = None


class GroupRequest(BaseModel):
    user_ids: list[int] = Field(..., min_length=1)
    group_size: int


class GroupResponse(BaseModel):
    groups: list[list[int]]
    total_groups: int
    total_users: int


class PopularInterest(BaseModel):
    id: int
    name: str
    category: str | None = None
    user_count: int


class MatchingStatistics(BaseModel):
    profile: MatchingProfile
    tips: list[str]
    popular_interests: list[PopularInterest]
    recommended_min_age: int
    recommended_max_age: int


class CompatibleUsersQuery(BaseModel):
    gender_filter: GenderFilter = GenderFilter.MIXED
    min_age: int | None = Field(default=None, ge=0)
    max_age: int | None = Field(default=None, ge=0)
    limit: int = Field(default=20, ge=1, le=100)
