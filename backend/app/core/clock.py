"""Time helpers shared by the lifecycle and realtime code."""

from __future__ import annotations

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes loaded back from the database."""

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def age_on(birth_date: date, today: date) -> int:
    """Age in full years, adjusted when the birthday has not occurred yet."""

    years = today.year - birth_date.year
    if (today.month, today.day) < (birth_date.month, birth_date.day):
        years -= 1
    return years


def year_age(birth_date: date, today: date) -> int:
    """Age as a plain year difference, as used by the matching heuristics."""

    return today.year - birth_date.year
