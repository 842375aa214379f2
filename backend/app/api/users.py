"""User profile endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_user
from app.config import get_settings
from app.core.clock import age_on, utcnow
from app.core.errors import ValidationFailed
from app.database import get_db
from app.models import User, UserInterest
from app.schemas import UserRead, UserUpdate
from app.services.profiles import load_user, replace_user_interests

router = APIRouter(prefix="/users", tags=["users"])
settings = get_settings()
logger = logging.getLogger(__name__)


def _ensure_self(user_id: int, current_user: User) -> None:
    if user_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only modify your own account",
        )


@router.get("", response_model=list[UserRead])
def list_users(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> list[UserRead]:
    """Return active users ordered by id."""

    stmt = (
        select(User)
        .where(User.is_active.is_(True))
        .options(selectinload(User.interest_links).selectinload(UserInterest.interest))
        .order_by(User.id)
        .offset(offset)
        .limit(limit)
    )
    return [UserRead.from_user(user) for user in db.execute(stmt).scalars()]


@router.get("/{user_id}", response_model=UserRead)
def read_user(
    user_id: int,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> UserRead:
    user = load_user(db, user_id)
    if user is None or not user.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return UserRead.from_user(user)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserRead:
    """Update the caller's own profile; omitted fields are left untouched."""

    _ensure_self(user_id, current_user)
    user = load_user(db, user_id)

    changes = payload.model_dump(exclude_unset=True, exclude={"interest_ids"})
    birth_date = changes.get("date_of_birth")
    if birth_date is not None and age_on(birth_date, utcnow().date()) < settings.minimum_registration_age:
        raise ValidationFailed(f"You must be at least {settings.minimum_registration_age} years old")
    for name, value in changes.items():
        if name in {"full_name", "date_of_birth"} and value is None:
            continue
        setattr(user, name, value)

    if payload.interest_ids is not None:
        replace_user_interests(db, user, payload.interest_ids)

    user.updated_at = utcnow()
    db.commit()
    logger.info("Updated profile of user %s", user_id)
    return UserRead.from_user(load_user(db, user_id))


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_user(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> None:
    """Soft-delete the caller's account."""

    _ensure_self(user_id, current_user)
    current_user.is_active = False
    current_user.updated_at = utcnow()
    db.commit()
    logger.info("Deactivated user %s", user_id)
