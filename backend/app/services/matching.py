"""Matching queries: compatible users, reactions, suggestions and statistics."""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.core.clock import utcnow, year_age
from app.core.errors import NotFound, ValidationFailed
from app.models import GenderFilter, Interest, Match, MatchStatus, User, UserInterest
from app.schemas.matching import MatchingProfile, PopularInterest
from app.services.compatibility import load_profiles, pair_score

logger = logging.getLogger(__name__)

MATCHING_TIPS = (
    "Complete your profile to get better matches",
    "Add more interests to find people with common hobbies",
    "Be active in chat rooms to increase your visibility",
    "Use voice chat to make stronger connections",
    "Be respectful and genuine in your interactions",
)


def _other_user_of(match: Match, user_id: int) -> int:
    return match.receiver_id if match.sender_id == user_id else match.sender_id


def find_compatible_users(
    db: Session,
    user: User,
    *,
    gender_filter: GenderFilter = GenderFilter.MIXED,
    min_age: int | None = None,
    max_age: int | None = None,
    limit: int | None = None,
) -> list[tuple[User, float]]:
    """Active users passing the filters, best compatibility first."""

    stmt = select(User).where(User.id != user.id, User.is_active.is_(True))
    if gender_filter is not GenderFilter.MIXED:
        stmt = stmt.where(User.gender == gender_filter.value)
    candidates = db.execute(stmt.order_by(User.id)).scalars().all()

    today = utcnow().date()
    if min_age is not None:
        candidates = [item for item in candidates if year_age(item.date_of_birth, today) >= min_age]
    if max_age is not None:
        candidates = [item for item in candidates if year_age(item.date_of_birth, today) <= max_age]

    profiles = load_profiles(db, [user.id, *(item.id for item in candidates)])
    scored = [(candidate, pair_score(profiles, user.id, candidate.id)) for candidate in candidates]
    scored.sort(key=lambda item: item[1], reverse=True)
    logger.debug("Found %d compatible users for user %s", len(scored), user.id)
    return scored[:limit] if limit is not None else scored


def find_match_between(db: Session, first_user_id: int, second_user_id: int) -> Match | None:
    return db.execute(
        select(Match).where(Match.pair_key == Match.build_pair_key(first_user_id, second_user_id))
    ).scalar_one_or_none()


def record_reaction(db: Session, user_id: int, target_user_id: int, is_like: bool) -> tuple[Match, bool]:
    """Record a like/dislike as a responded match unless the pair already has one.

    Returns the match and whether it was created by this call.
    """

    if user_id == target_user_id:
        raise ValidationFailed("You cannot react to yourself")
    target = db.get(User, target_user_id)
    if target is None or not target.is_active:
        raise NotFound("User not found")

    existing = find_match_between(db, user_id, target_user_id)
    if existing is not None:
        logger.info("Reaction from %s to %s ignored; match %s already exists", user_id, target_user_id, existing.id)
        return existing, False

    now = utcnow()
    match = Match(
        sender_id=user_id,
        receiver_id=target_user_id,
        pair_key=Match.build_pair_key(user_id, target_user_id),
        status=MatchStatus.ACCEPTED if is_like else MatchStatus.REJECTED,
        created_at=now,
        responded_at=now,
    )
    db.add(match)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        existing = find_match_between(db, user_id, target_user_id)
        if existing is None:
            raise
        return existing, False
    db.refresh(match)
    logger.info(
        "Processed user reaction: %s %s %s", user_id, "liked" if is_like else "disliked", target_user_id
    )
    return match, True


def matching_profile(db: Session, user: User) -> MatchingProfile:
    interest_names = list(
        db.execute(
            select(Interest.name)
            .join(UserInterest, UserInterest.interest_id == Interest.id)
            .where(UserInterest.user_id == user.id)
            .order_by(Interest.name)
        ).scalars()
    )
    total_matches = int(
        db.execute(
            select(func.count(Match.id)).where(or_(Match.sender_id == user.id, Match.receiver_id == user.id))
        ).scalar_one()
    )
    return MatchingProfile(
        user_id=user.id,
        age=year_age(user.date_of_birth, utcnow().date()),
        gender=user.gender,
        city=user.city,
        interests=interest_names,
        total_matches=total_matches,
        last_active=user.last_login_at,
    )


def popular_interests(db: Session, limit: int = 10) -> list[PopularInterest]:
    user_count = func.count(UserInterest.user_id).label("user_count")
    rows = db.execute(
        select(Interest.id, Interest.name, Interest.category, user_count)
        .join(UserInterest, UserInterest.interest_id == Interest.id)
        .where(Interest.is_active.is_(True))
        .group_by(Interest.id, Interest.name, Interest.category)
        .order_by(user_count.desc(), Interest.name)
        .limit(limit)
    ).all()
    return [
        PopularInterest(id=row.id, name=row.name, category=row.category, user_count=row.user_count)
        for row in rows
    ]


def recommended_age_window(birth_date: date, *, today: date | None = None, floor: int = 18) -> tuple[int, int]:
    age = year_age(birth_date, today or utcnow().date())
    return max(floor, age - 5), age + 5


def match_suggestions(db: Session, user: User, limit: int = 10) -> list[User]:
    """Active users sharing at least one interest with ``user`` and no match with them yet."""

    my_interests = select(UserInterest.interest_id).where(UserInterest.user_id == user.id)
    matched = db.execute(
        select(Match).where(or_(Match.sender_id == user.id, Match.receiver_id == user.id))
    ).scalars()
    excluded = {user.id, *(_other_user_of(match, user.id) for match in matched)}

    shared = func.count(UserInterest.interest_id).label("shared")
    rows = db.execute(
        select(UserInterest.user_id, shared)
        .join(User, User.id == UserInterest.user_id)
        .where(
            UserInterest.interest_id.in_(my_interests),
            User.is_active.is_(True),
            UserInterest.user_id.not_in(excluded),
        )
        .group_by(UserInterest.user_id)
        .order_by(shared.desc(), UserInterest.user_id)
        .limit(limit)
    ).all()
    ids = [row.user_id for row in rows]
    if not ids:
        return []
    users = {
        item.id: item
        for item in db.execute(
            select(User)
            .where(User.id.in_(ids))
            .options(selectinload(User.interest_links).selectinload(UserInterest.interest))
        ).scalars()
    }
    return [users[user_id] for user_id in ids if user_id in users]
