"""Schemas related to user profiles and interests."""

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, constr

from app.core.clock import age_on, utcnow
from app.models import User
from app.schemas.common import UtcDateTime


class InterestRead(BaseModel):
    """Interest catalogue entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    category: str | None = None


class PublicUser(BaseModel):
    """Minimal public-facing user information."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: str
    profile_image_url: str | None = None
    city: str | None = None


class UserRead(PublicUser):
    """Full user profile including interests."""

    email: str
    phone_number: str | None = None
    date_of_birth: date
    age: int
    gender: str | None = None
    bio: str | None = None
    is_active: bool
    is_email_verified: bool
    created_at: UtcDateTime
    last_login_at: UtcDateTime | None = None
    interests: list[InterestRead] = Field(default_factory=list)

    @classmethod
    def from_user(cls, user: User) -> "UserRead":
        interests = [link.interest for link in user.interest_links if link.interest is not None]
        return cls(
            id=user.id,
            full_name=user.full_name,
            profile_image_url=user.profile_image_url,
            city=user.city,
            email=user.email,
            phone_number=user.phone_number,
            date_of_birth=user.date_of_birth,
            age=age_on(user.date_of_birth, utcnow().date()),
            gender=user.gender,
            bio=user.bio,
            is_active=user.is_active,
            is_email_verified=user.is_email_verified,
            created_at=user.created_at,
            last_login_at=user.last_login_at,
            interests=[InterestRead.model_validate(interest) for interest in interests],
        )


class UserUpdate(BaseModel):
    """Payload for updating the caller's own profile; omitted fields stay unchanged."""

    full_name: constr(strip_whitespace=True, min_length=2, max_length=100) | None = None
    phone_number: constr(strip_whitespace=True, max_length=20) | None = None
    date_of_birth: date | None = None
    gender: constr(strip_whitespace=True, max_length=10) | None = None
    bio: constr(max_length=500) | None = None
    profile_image_url: constr(max_length=500) | None = None
    city: constr(strip_whitespace=True, max_length=100) | None = None
    interest_ids: list[int] | None = Field(
        default=None, description="Replaces the current interests when provided"
    )
