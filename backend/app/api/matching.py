"""Compatibility matching endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.config import get_settings
from app.core.clock import utcnow, year_age
from app.core.errors import NotFound, ValidationFailed
from app.database import get_db
from app.models import User
from app.schemas import (
    CompatibilityRead,
    CompatibleUser,
    GroupRequest,
    GroupResponse,
    MatchingProfile,
    MatchingStatistics,
    PublicUser,
    ReactionRequest,
    ReactionResult,
)
from app.schemas.matching import CompatibleUsersQuery
from app.services.compatibility import calculate_compatibility, compatibility_level
from app.services.grouping import create_optimized_groups
from app.services.matching import (
    MATCHING_TIPS,
    find_compatible_users,
    matching_profile,
    popular_interests,
    recommended_age_window,
    record_reaction,
)

router = APIRouter(prefix="/matching", tags=["matching"])
settings = get_settings()


@router.get("/compatible-users", response_model=list[CompatibleUser])
def list_compatible_users(
    query: CompatibleUsersQuery = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[CompatibleUser]:
    if query.min_age is not None and query.max_age is not None and query.min_age > query.max_age:
        raise ValidationFailed("min_age cannot be greater than max_age")

    today = utcnow().date()
    scored = find_compatible_users(
        db,
        current_user,
        gender_filter=query.gender_filter,
        min_age=query.min_age,
        max_age=query.max_age,
        limit=query.limit,
    )
    return [
        CompatibleUser(
            user=PublicUser.model_validate(user),
            age=year_age(user.date_of_birth, today),
            gender=user.gender,
            compatibility_score=score,
        )
        for user, score in scored
    ]


@router.get("/compatibility/{target_user_id}", response_model=CompatibilityRead)
def read_compatibility(
    target_user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CompatibilityRead:
    if target_user_id == current_user.id:
        raise ValidationFailed("Cannot calculate compatibility with yourself")
    target = db.get(User, target_user_id)
    if target is None or not target.is_active:
        raise NotFound("User not found")

    score = calculate_compatibility(db, current_user.id, target_user_id)
    return CompatibilityRead(
        user_id=current_user.id,
        target_user_id=target_user_id,
        compatibility_score=score,
        compatibility_level=compatibility_level(score),
    )


@router.post("/react", response_model=ReactionResult)
def react_to_user(
    payload: ReactionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ReactionResult:
    """Like or dislike another user; the first reaction of a pair is recorded as a match."""

    match, created = record_reaction(db, current_user.id, payload.target_user_id, payload.is_like)
    return ReactionResult(
        target_user_id=payload.target_user_id,
        is_like=payload.is_like,
        match_id=match.id,
        match_status=match.status.value,
        created=created,
    )


@router.get("/profile", response_model=MatchingProfile)
def read_matching_profile(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MatchingProfile:
    return matching_profile(db, current_user)


@router.post("/create-groups", response_model=GroupResponse)
def create_groups(
    payload: GroupRequest,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
) -> GroupResponse:
    if not settings.min_group_size <= payload.group_size <= settings.max_group_size:
        raise ValidationFailed(
            f"Group size must be between {settings.min_group_size} and {settings.max_group_size}"
        )
    groups = create_optimized_groups(db, payload.user_ids, payload.group_size)
    return GroupResponse(
        groups=groups,
        total_groups=len(groups),
        total_users=sum(len(group) for group in groups),
    )


@router.get("/statistics", response_model=MatchingStatistics)
def read_statistics(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> MatchingStatistics:
    min_age, max_age = recommended_age_window(
        current_user.date_of_birth, floor=settings.minimum_registration_age
    )
    return MatchingStatistics(
        profile=matching_profile(db, current_user),
        tips=list(MATCHING_TIPS),
        popular_interests=popular_interests(db),
        recommended_min_age=min_age,
        recommended_max_age=max_age,
    )
