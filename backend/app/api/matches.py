"""Match request endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.api.deps import get_current_user
from app.core.clock import utcnow
from app.core.errors import Conflict, NotFound, ValidationFailed
from app.database import get_db
from app.models import Match, MatchStatus, User
from app.schemas import MatchCreate, MatchRead, MatchRespond, UserRead
from app.services.matching import find_match_between, match_suggestions

router = APIRouter(prefix="/matches", tags=["matches"])
logger = logging.getLogger(__name__)


def _matches_query(user_id: int):
    return (
        select(Match)
        .where(or_(Match.sender_id == user_id, Match.receiver_id == user_id))
        .options(selectinload(Match.sender), selectinload(Match.receiver))
        .order_by(Match.created_at.desc(), Match.id.desc())
    )


@router.get("", response_model=list[MatchRead])
def list_matches(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Match]:
    return list(db.execute(_matches_query(current_user.id)).scalars())


@router.get("/pending", response_model=list[MatchRead])
def list_pending_matches(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Match]:
    """Pending matches the caller has received."""

    stmt = _matches_query(current_user.id).where(
        Match.receiver_id == current_user.id,
        Match.status == MatchStatus.PENDING,
    )
    return list(db.execute(stmt).scalars())


@router.get("/accepted", response_model=list[MatchRead])
def list_accepted_matches(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[Match]:
    stmt = _matches_query(current_user.id).where(Match.status == MatchStatus.ACCEPTED)
    return list(db.execute(stmt).scalars())


@router.get("/suggestions", response_model=list[UserRead])
def list_suggestions(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[UserRead]:
    return [UserRead.from_user(user) for user in match_suggestions(db, current_user)]


@router.post("", response_model=MatchRead, status_code=status.HTTP_201_CREATED)
def create_match(
    payload: MatchCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Match:
    """Send a pending match request to another active user."""

    if payload.receiver_id == current_user.id:
        raise ValidationFailed("You cannot match with yourself")
    receiver = db.get(User, payload.receiver_id)
    if receiver is None or not receiver.is_active:
        raise NotFound("User not found")
    if find_match_between(db, current_user.id, receiver.id) is not None:
        raise Conflict("A match between these users already exists")

    match = Match(
        sender_id=current_user.id,
        receiver_id=receiver.id,
        pair_key=Match.build_pair_key(current_user.id, receiver.id),
        status=MatchStatus.PENDING,
        message=payload.message,
        created_at=utcnow(),
    )
    db.add(match)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise Conflict("A match between these users already exists") from exc
    db.refresh(match)
    logger.info("User %s sent match %s to user %s", current_user.id, match.id, receiver.id)
    return match


@router.put("/{match_id}/respond", response_model=MatchRead)
def respond_to_match(
    match_id: int,
    payload: MatchRespond,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Match:
    match = db.get(Match, match_id)
    if match is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Match not found")
    if match.receiver_id != current_user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the receiver can respond to this match",
        )
    if match.status != MatchStatus.PENDING:
        raise ValidationFailed("This match has already been answered")

    match.status = MatchStatus(payload.status)
    match.responded_at = utcnow()
    db.commit()
    db.refresh(match)
    logger.info("User %s %s match %s", current_user.id, match.status.value, match.id)
    return match
