"""Tests for the greedy group optimizer."""

from __future__ import annotations

import random
from datetime import date

import pytest

from app.core.errors import ValidationFailed
from app.services.grouping import build_groups, create_optimized_groups


def flat_score(first: int, second: int) -> float:
    return 0.5


def parity_score(first: int, second: int) -> float:
    return 1.0 if first % 2 == second % 2 else 0.0


@pytest.mark.parametrize(("count", "size"), [(10, 3), (7, 2), (20, 5), (5, 4), (3, 5), (1, 1)])
def test_every_user_lands_in_exactly_one_group(count, size):
    users = list(range(1, count + 1))

    groups = build_groups(users, size, flat_score, rng=random.Random(7))

    flattened = [user for group in groups for user in group]
    assert sorted(flattened) == users
    assert len(groups) <= -(-count // size)
    assert all(len(group) <= 2 * size for group in groups)


def test_leftovers_are_dealt_round_robin():
    groups = build_groups(range(1, 8), 3, flat_score, rng=random.Random(1))

    assert sorted(len(group) for group in groups) == [3, 4]


def test_small_pool_becomes_single_undersized_group():
    assert build_groups([4, 5], 3, flat_score, rng=random.Random(1)) == [[4, 5]]


def test_groups_prefer_compatible_members():
    groups = build_groups(range(1, 9), 4, parity_score, rng=random.Random(3))

    for group in groups:
        assert len({user % 2 for user in group}) == 1


def test_duplicates_are_ignored():
    groups = build_groups([1, 1, 2, 2, 3, 3, 4], 2, flat_score, rng=random.Random(5))

    assert sorted(user for group in groups for user in group) == [1, 2, 3, 4]


def test_zero_scores_are_still_grouped():
    groups = build_groups(range(1, 5), 2, lambda a, b: 0.0, rng=random.Random(2))

    assert sorted(len(group) for group in groups) == [2, 2]


def test_invalid_group_size_is_rejected():
    with pytest.raises(ValidationFailed):
        build_groups([1, 2], 0, flat_score)


def test_create_optimized_groups_against_store(db_session, make_user):
    users = [make_user(date_of_birth=date(1990 + index, 1, 1)) for index in range(6)]

    groups = create_optimized_groups(db_session, [user.id for user in users], 3, rng=random.Random(11))

    assert len(groups) == 2
    assert sorted(user for group in groups for user in group) == sorted(user.id for user in users)
