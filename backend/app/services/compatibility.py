"""Pairwise compatibility scoring between two user profiles."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.clock import as_utc, utcnow, year_age
from app.models import User, UserInterest

logger = logging.getLogger(__name__)

AGE_WEIGHT = 0.3
INTEREST_WEIGHT = 0.5
LOCATION_WEIGHT = 0.1
ACTIVITY_WEIGHT = 0.1

NEUTRAL_SCORE = 0.5

# (maximum gap, score) pairs checked in order.
_AGE_GAP_TIERS: tuple[tuple[int, float], ...] = ((0, 1.0), (2, 0.9), (5, 0.7), (10, 0.5), (15, 0.3))
_ACTIVITY_HOUR_TIERS: tuple[tuple[float, float], ...] = ((1, 1.0), (6, 0.8), (24, 0.6), (168, 0.4))


@dataclass(frozen=True, slots=True)
class CompatibilityProfile:
    """The subset of a user profile the scorer looks at.

    ``interest_ids`` is ``None`` when the interests could not be loaded.
    """

    user_id: int
    date_of_birth: date
    interest_ids: frozenset[int] | None
    city: str | None
    last_login_at: datetime | None


def age_score(age_gap: int) -> float:
    gap = abs(age_gap)
    for limit, score in _AGE_GAP_TIERS:
        if gap <= limit:
            return score
    return 0.1


def interest_score(first: Iterable[int] | None, second: Iterable[int] | None) -> float:
    """Jaccard similarity of two interest sets, neutral when either is unknown or empty."""

    if first is None or second is None:
        return NEUTRAL_SCORE
    first_set, second_set = set(first), set(second)
    if not first_set or not second_set:
        return NEUTRAL_SCORE
    return len(first_set & second_set) / len(first_set | second_set)


def location_score(first_city: str | None, second_city: str | None) -> float:
    if not first_city or not second_city:
        return NEUTRAL_SCORE
    return 1.0 if first_city.casefold() == second_city.casefold() else 0.3


def activity_score(first_login: datetime | None, second_login: datetime | None) -> float:
    if first_login is None or second_login is None:
        return NEUTRAL_SCORE
    hours = abs((as_utc(first_login) - as_utc(second_login)).total_seconds()) / 3600
    for limit, score in _ACTIVITY_HOUR_TIERS:
        if hours <= limit:
            return score
    return 0.2


def score_profiles(
    first: CompatibilityProfile,
    second: CompatibilityProfile,
    *,
    today: date | None = None,
) -> float:
    """Weighted compatibility of two profiles in ``[0, 1]``, rounded to 2 decimals."""

    today = today or utcnow().date()
    gap = year_age(first.date_of_birth, today) - year_age(second.date_of_birth, today)
    total = (
        age_score(gap) * AGE_WEIGHT
        + interest_score(first.interest_ids, second.interest_ids) * INTEREST_WEIGHT
        + location_score(first.city, second.city) * LOCATION_WEIGHT
        + activity_score(first.last_login_at, second.last_login_at) * ACTIVITY_WEIGHT
    )
    return round(min(max(total, 0.0), 1.0), 2)


def _load_interest_map(db: Session, user_ids: Iterable[int]) -> dict[int, frozenset[int]] | None:
    ids = list(user_ids)
    try:
        rows = db.execute(
            select(UserInterest.user_id, UserInterest.interest_id).where(UserInterest.user_id.in_(ids))
        ).all()
    except SQLAlchemyError:
        logger.warning("Failed to load interests for users %s", ids, exc_info=True)
        return None
    collected: dict[int, set[int]] = {user_id: set() for user_id in ids}
    for user_id, interest_id in rows:
        collected[user_id].add(interest_id)
    return {user_id: frozenset(values) for user_id, values in collected.items()}


def load_profiles(db: Session, user_ids: Iterable[int]) -> dict[int, CompatibilityProfile]:
    """Load scorer profiles for the given users in two queries.

    Users that do not exist are simply absent from the result.
    """

    ids = sorted({int(user_id) for user_id in user_ids})
    if not ids:
        return {}
    users = db.execute(select(User).where(User.id.in_(ids))).scalars().all()
    interests = _load_interest_map(db, [user.id for user in users])
    profiles: dict[int, CompatibilityProfile] = {}
    for user in users:
        profiles[user.id] = CompatibilityProfile(
            user_id=user.id,
            date_of_birth=user.date_of_birth,
            interest_ids=None if interests is None else interests.get(user.id, frozenset()),
            city=user.city,
            last_login_at=user.last_login_at,
        )
    return profiles


def pair_score(profiles: Mapping[int, CompatibilityProfile], first_id: int, second_id: int) -> float:
    first = profiles.get(first_id)
    second = profiles.get(second_id)
    if first is None or second is None:
        return 0.0
    return score_profiles(first, second)


def calculate_compatibility(db: Session, first_user_id: int, second_user_id: int) -> float:
    """Score two stored users; unknown users or lookup failures score ``0.0``."""

    try:
        profiles = load_profiles(db, (first_user_id, second_user_id))
    except SQLAlchemyError:
        logger.error(
            "Error calculating compatibility between %s and %s",
            first_user_id,
            second_user_id,
            exc_info=True,
        )
        return 0.0
    return pair_score(profiles, first_user_id, second_user_id)


def compatibility_level(score: float) -> str:
    if score >= 0.8:
        return "Excellent"
    if score >= 0.6:
        return "Very Good"
    if score >= 0.4:
        return "Good"
    if score >= 0.2:
        return "Fair"
    return "Low"
