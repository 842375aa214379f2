"""User profile helpers shared by the auth and users endpoints."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.core.errors import ValidationFailed
from app.models import Interest, User, UserInterest


def replace_user_interests(db: Session, user: User, interest_ids: Iterable[int]) -> None:
    """Replace the user's interests; the caller commits."""

    wanted = list(dict.fromkeys(interest_ids))
    if wanted:
        found = set(
            db.execute(
                select(Interest.id).where(Interest.id.in_(wanted), Interest.is_active.is_(True))
            ).scalars()
        )
        missing = [interest_id for interest_id in wanted if interest_id not in found]
        if missing:
            raise ValidationFailed(f"Unknown interests: {', '.join(str(item) for item in missing)}")

    current = {link.interest_id: link for link in user.interest_links}
    user.interest_links = [
        current.get(interest_id) or UserInterest(interest_id=interest_id) for interest_id in wanted
    ]


def load_user(db: Session, user_id: int) -> User | None:
    """Fetch a user with interests eagerly loaded."""

    return db.execute(
        select(User)
        .where(User.id == user_id)
        .options(selectinload(User.interest_links).selectinload(UserInterest.interest))
    ).scalar_one_or_none()
