"""Interest catalogue endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.database import get_db
from app.models import Interest
from app.schemas import InterestRead

router = APIRouter(prefix="/interests", tags=["interests"])


def _active_interests():
    return select(Interest).where(Interest.is_active.is_(True))


@router.get("", response_model=list[InterestRead])
def list_interests(db: Session = Depends(get_db)) -> list[Interest]:
    stmt = _active_interests().order_by(Interest.category, Interest.name)
    return list(db.execute(stmt).scalars())


@router.get("/categories", response_model=list[str])
def list_categories(db: Session = Depends(get_db)) -> list[str]:
    stmt = (
        select(Interest.category)
        .where(Interest.is_active.is_(True), Interest.category.is_not(None))
        .distinct()
        .order_by(Interest.category)
    )
    return list(db.execute(stmt).scalars())


@router.get("/category/{category}", response_model=list[InterestRead])
def list_interests_by_category(category: str, db: Session = Depends(get_db)) -> list[Interest]:
    stmt = _active_interests().where(Interest.category == category).order_by(Interest.name)
    return list(db.execute(stmt).scalars())


@router.get("/{interest_id}", response_model=InterestRead)
def read_interest(interest_id: int, db: Session = Depends(get_db)) -> Interest:
    interest = db.get(Interest, interest_id)
    if interest is None or not interest.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Interest not found")
    return interest
