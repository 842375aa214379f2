"""Unit tests for the pairwise compatibility scorer."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from app.services.compatibility import (
    CompatibilityProfile,
    activity_score,
    age_score,
    calculate_compatibility,
    compatibility_level,
    interest_score,
    location_score,
    score_profiles,
)

TODAY = date(2026, 10, 19)
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def profile(
    user_id: int,
    birth_year: int,
    interests: set[int] | None = None,
    city: str | None = "X",
    last_login_at: datetime | None = NOW,
) -> CompatibilityProfile:
    return CompatibilityProfile(
        user_id=user_id,
        date_of_birth=date(birth_year, 3, 1),
        interest_ids=frozenset(interests) if interests is not None else None,
        city=city,
        last_login_at=last_login_at,
    )


def test_reference_pair_scores_072():
    first = profile(1, 1996, {1, 2, 3})
    second = profile(2, 1994, {2, 3, 4}, last_login_at=NOW - timedelta(minutes=30))

    assert score_profiles(first, second, today=TODAY) == 0.72


def test_age_score_is_non_increasing_and_perfect_only_without_gap():
    scores = [age_score(gap) for gap in range(0, 30)]

    assert scores[0] == 1.0
    assert all(later <= earlier for earlier, later in zip(scores, scores[1:]))
    assert all(score < 1.0 for score in scores[1:])
    assert age_score(-3) == age_score(3) == 0.7
    assert age_score(16) == 0.1


def test_interest_score_neutral_for_missing_or_empty_sets():
    assert interest_score(set(), {1, 2}) == 0.5
    assert interest_score({1}, set()) == 0.5
    assert interest_score(None, {1}) == 0.5
    assert interest_score({1, 2}, {3, 4}) == 0.0
    assert interest_score({1, 2}, {1, 2}) == 1.0


def test_location_score_ignores_case_and_handles_missing_city():
    assert location_score("Izmir", "izmir") == 1.0
    assert location_score("Izmir", "Ankara") == 0.3
    assert location_score(None, "Ankara") == 0.5


@pytest.mark.parametrize(
    ("hours", "expected"),
    [(0.5, 1.0), (5, 0.8), (20, 0.6), (100, 0.4), (200, 0.2)],
)
def test_activity_score_tiers(hours, expected):
    assert activity_score(NOW, NOW - timedelta(hours=hours)) == expected


def test_activity_score_accepts_naive_database_values():
    naive = (NOW - timedelta(minutes=10)).replace(tzinfo=None)

    assert activity_score(NOW, naive) == 1.0
    assert activity_score(None, NOW) == 0.5


def test_score_is_bounded_and_rounded():
    worst = profile(1, 1950, {1}, city="A", last_login_at=NOW)
    other = profile(2, 2005, {2}, city="B", last_login_at=NOW - timedelta(days=30))

    score = score_profiles(worst, other, today=TODAY)

    assert 0.0 <= score <= 1.0
    assert score == round(score, 2)
    assert score_profiles(profile(1, 1990, {1}), profile(2, 1990, {1}), today=TODAY) == 1.0


def test_calculate_compatibility_uses_stored_profiles(db_session, make_user, make_interest):
    music = make_interest("Music")
    travel = make_interest("Travel")
    first = make_user(interest_ids=(music.id, travel.id), last_login_at=NOW)
    second = make_user(interest_ids=(music.id,), last_login_at=NOW)

    score = calculate_compatibility(db_session, first.id, second.id)

    assert score == 0.75


def test_calculate_compatibility_unknown_user_scores_zero(db_session, make_user):
    user = make_user()

    assert calculate_compatibility(db_session, user.id, 9999) == 0.0


@pytest.mark.parametrize(
    ("score", "level"),
    [(0.85, "Excellent"), (0.8, "Excellent"), (0.65, "Very Good"), (0.4, "Good"), (0.2, "Fair"), (0.1, "Low")],
)
def test_compatibility_level_labels(score, level):
    assert compatibility_level(score) == level
