"""Authentication API endpoints."""

import logging
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.config import get_settings
from app.core.clock import age_on, utcnow
from app.core.errors import Conflict, ValidationFailed
from app.core.security import (
    RefreshTokenError,
    create_access_token,
    create_refresh_token,
    get_password_hash,
    revoke_refresh_token,
    validate_refresh_token,
    verify_password,
)
from app.database import get_db
from app.models import User
from app.schemas import AuthResponse, LoginRequest, LogoutRequest, RefreshRequest, RegisterRequest, Token, UserRead
from app.services.profiles import load_user, replace_user_interests

router = APIRouter()
settings = get_settings()
logger = logging.getLogger(__name__)


def issue_tokens(user: User) -> Token:
    """Build a fresh access/refresh token pair for ``user``."""

    access_token_expires = timedelta(minutes=settings.access_token_expire_minutes)
    access_token = create_access_token(
        {"sub": str(user.id), "name": user.full_name, "email": user.email},
        expires_delta=access_token_expires,
    )
    refresh_token, _ = create_refresh_token(str(user.id))
    return Token(
        access_token=access_token,
        refresh_token=refresh_token,
        token_type="bearer",
        expires_in=int(access_token_expires.total_seconds()),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register_user(user_in: RegisterRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Register a new user in the system."""

    email = user_in.email.lower()
    if age_on(user_in.date_of_birth, utcnow().date()) < settings.minimum_registration_age:
        raise ValidationFailed(f"You must be at least {settings.minimum_registration_age} years old to register")

    existing_user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing_user is not None:
        raise Conflict("A user with this email already exists")

    user = User(
        full_name=user_in.full_name,
        email=email,
        hashed_password=get_password_hash(user_in.password),
        phone_number=user_in.phone_number,
        date_of_birth=user_in.date_of_birth,
        gender=user_in.gender,
        city=user_in.city,
        is_active=True,
        is_email_verified=False,
    )
    replace_user_interests(db, user, user_in.interest_ids)
    db.add(user)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("A user with this email already exists") from exc

    logger.info("Registered user %s", user.id)
    user = load_user(db, user.id)
    token = issue_tokens(user)
    return AuthResponse(**token.model_dump(), user=UserRead.from_user(user))


@router.post("/login", response_model=AuthResponse)
def login_user(credentials: LoginRequest, db: Session = Depends(get_db)) -> AuthResponse:
    """Authenticate a user and return a token pair."""

    db_user = db.execute(select(User).where(User.email == credentials.email.lower())).scalar_one_or_none()
    if (
        db_user is None
        or not db_user.is_active
        or not verify_password(credentials.password, db_user.hashed_password)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    db_user.last_login_at = utcnow()
    db.commit()
    user = load_user(db, db_user.id)
    token = issue_tokens(user)
    return AuthResponse(**token.model_dump(), user=UserRead.from_user(user))


@router.post("/refresh-token", response_model=Token)
def refresh_access_token(payload: RefreshRequest, db: Session = Depends(get_db)) -> Token:
    """Exchange a valid refresh token for a new pair; the presented token is revoked."""

    try:
        refresh_data = validate_refresh_token(payload.refresh_token, revoke=True)
    except RefreshTokenError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate refresh token",
        ) from exc

    try:
        user_id = int(refresh_data.subject)
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token subject") from exc

    user = db.get(User, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")

    return issue_tokens(user)


@router.post("/logout")
def logout_user(payload: LogoutRequest, current_user: User = Depends(get_current_user)) -> dict[str, str]:
    """Revoke the presented refresh token."""

    if revoke_refresh_token(payload.refresh_token):
        logger.info("User %s logged out", current_user.id)
    return {"message": "Logged out successfully"}


@router.get("/profile", response_model=UserRead)
def read_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserRead:
    """Return the authenticated user's profile."""

    return UserRead.from_user(load_user(db, current_user.id))
