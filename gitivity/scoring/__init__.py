"""Gitivity scoring engine.

Pure functions only: no I/O and no failure modes. The total is the capped
average of the three pillars multiplied by every earned multiplier, and is
deliberately left uncapped so elite profiles can exceed 100.
"""

import math
from datetime import UTC, datetime

from gitivity.api.schemas.github import ProfileStats
from gitivity.api.schemas.scoring import ScoreBreakdown
from gitivity.scoring.achievements import calculate_achievements
from gitivity.scoring.multipliers import calculate_multipliers
from gitivity.scoring.pillars import (
    calculate_collaborator_score,
    calculate_craftsmanship_score,
    calculate_creator_score,
    finisher_ratio,
)

# Bump whenever any formula, threshold or multiplier changes.
SCORE_VERSION = 3


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def calculate_gitivity_score(stats: ProfileStats, now: datetime | None = None) -> ScoreBreakdown:
    now = now or datetime.now(UTC)

    creator = calculate_creator_score(stats)
    collaborator = calculate_collaborator_score(stats)
    craftsmanship = calculate_craftsmanship_score(stats, now)

    achievements = calculate_achievements(stats, now)
    multipliers = calculate_multipliers(stats, achievements, now)

    base_score = min((creator + collaborator + craftsmanship) / 3, 100)

    total = base_score
    for multiplier in multipliers:
        total *= multiplier.value

    return ScoreBreakdown(
        total=round_half_up(total),
        creator_score=round_half_up(creator),
        collaborator_score=round_half_up(collaborator),
        craftsmanship_score=round_half_up(craftsmanship),
        achievements=achievements,
        multipliers=multipliers,
    )


__all__ = [
    "SCORE_VERSION",
    "calculate_achievements",
    "calculate_collaborator_score",
    "calculate_craftsmanship_score",
    "calculate_creator_score",
    "calculate_gitivity_score",
    "calculate_multipliers",
    "finisher_ratio",
    "round_half_up",
]
