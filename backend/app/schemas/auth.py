"""Schemas for authentication endpoints."""

import re
from datetime import date

from pydantic import BaseModel, EmailStr, Field, constr, field_validator, model_validator

from app.schemas.users import UserRead

PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&]).+$")


class RegisterRequest(BaseModel):
    """Payload for creating a new account."""

    full_name: constr(strip_whitespace=True, min_length=2, max_length=100)
    email: EmailStr
    password: constr(min_length=8, max_length=128) = Field(
        ..., description="Needs a lowercase and an uppercase letter, a digit and one of @$!%*?&"
    )
    confirm_password: str
    phone_number: constr(strip_whitespace=True, max_length=20) | None = None
    date_of_birth: date
    gender: constr(strip_whitespace=True, max_length=10) | None = None
    city: constr(strip_whitespace=True, max_length=100) | None = None
    interest_ids: list[int] = Field(default_factory=list)

    @field_validator("password")
    @classmethod
    def check_password_strength(cls, value: str) -> str:
        if not PASSWORD_PATTERN.match(value):
            raise ValueError(
                "Password must contain at least one lowercase letter, one uppercase letter, "
                "one digit and one special character"
            )
        return value

    @model_validator(mode="after")
    def check_passwords_match(self) -> "RegisterRequest":
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """Payload for user login."""

    email: EmailStr
    password: constr(min_length=1, max_length=128)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class Token(BaseModel):
    """Token pair returned after authentication or refresh."""

    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type, always 'bearer'")
    refresh_token: str = Field(..., description="Opaque refresh token")
    expires_in: int = Field(..., description="Seconds until the access token expires")


class AuthResponse(Token):
    user: UserRead
