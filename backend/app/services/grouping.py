"""Greedy bucketing of users into compatibility-optimized groups."""

from __future__ import annotations

import logging
import random
from typing import Callable, Iterable, Sequence

from sqlalchemy.orm import Session

from app.core.errors import ValidationFailed
from app.services.compatibility import load_profiles, pair_score

logger = logging.getLogger(__name__)

ScoreFn = Callable[[int, int], float]


def _average_score(candidate: int, members: Sequence[int], score: ScoreFn) -> float:
    return sum(score(candidate, member) for member in members) / len(members)


def build_groups(
    user_ids: Iterable[int],
    group_size: int,
    score: ScoreFn,
    *,
    rng: random.Random | None = None,
) -> list[list[int]]:
    """Partition ``user_ids`` into groups of ``group_size``.

    Each group starts from a random seed and grows with the remaining user
    whose average score against the current members is highest (first one
    wins on ties). Users left over when fewer than ``group_size`` remain are
    dealt round-robin onto the formed groups, or become one undersized group
    when none was formed. Scoring is quadratic in the pool size.
    """

    if group_size < 1:
        raise ValidationFailed("Group size must be at least 1")

    rng = rng or random.Random()
    remaining = list(dict.fromkeys(user_ids))
    groups: list[list[int]] = []

    while len(remaining) >= group_size:
        seed = remaining.pop(rng.randrange(len(remaining)))
        group = [seed]
        while len(group) < group_size and remaining:
            best_index = 0
            best_score = float("-inf")
            for index, candidate in enumerate(remaining):
                candidate_score = _average_score(candidate, group, score)
                if candidate_score > best_score:
                    best_index, best_score = index, candidate_score
            group.append(remaining.pop(best_index))
        groups.append(group)

    if remaining:
        if groups:
            for index, user_id in enumerate(remaining):
                groups[index % len(groups)].append(user_id)
        else:
            groups.append(remaining)

    return groups


def create_optimized_groups(
    db: Session,
    user_ids: Sequence[int],
    group_size: int,
    *,
    rng: random.Random | None = None,
) -> list[list[int]]:
    """Group stored users, loading every profile once up front."""

    profiles = load_profiles(db, user_ids)
    groups = build_groups(
        user_ids,
        group_size,
        lambda first, second: pair_score(profiles, first, second),
        rng=rng,
    )
    logger.info("Created %d groups from %d users (group size %d)", len(groups), len(set(user_ids)), group_size)
    return groups
