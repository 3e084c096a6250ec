"""The three score pillars.

Every pillar is built from logarithmic sub-terms so that order-of-magnitude
growth is rewarded rather than raw counts. Each sub-term is capped on its
own before summing, and every pillar is capped at 100.
"""

import math
from datetime import UTC, datetime

from gitivity.api.schemas.github import ProfileStats

PILLAR_CAP = 100.0
SECONDS_PER_YEAR = 60 * 60 * 24 * 365


def _log10(value: float) -> float:
    return math.log10(max(1, value))


def account_age_years(stats: ProfileStats, now: datetime | None = None) -> float:
    now = now or datetime.now(UTC)
    return (now - stats.created_at).total_seconds() / SECONDS_PER_YEAR


def finisher_ratio(stats: ProfileStats) -> float:
    """Merged PRs over opened PRs; 1.0 when nothing was opened."""
    if stats.total_prs_opened > 0:
        return stats.total_prs_merged / stats.total_prs_opened
    return 1.0


def calculate_creator_score(stats: ProfileStats) -> float:
    """Impact of personal projects.

    - Stars (0-40): 10 stars = 8, 1K stars = 24, 100K stars = 40
    - Forks (0-30): 10 forks = 6, 1K forks = 18
    - Repository portfolio (0-20): 10 repos = 10, 100+ repos = 20
    - Repository health (0-10)
    """
    score = 0.0
    score += min(40, _log10(stats.total_stars_received) * 8)
    score += min(30, _log10(stats.total_forks_received) * 6)
    score += min(20, _log10(stats.public_repos) * 10)
    score += stats.repository_health.ratio * 10
    return min(score, PILLAR_CAP)


def calculate_collaborator_score(stats: ProfileStats) -> float:
    """Contribution to the wider ecosystem.

    - Merged PRs (0-50): 10 PRs = 16, 1K PRs = 48
    - Closed issues (0-20): 10 issues = 6, 1K issues = 18
    - Reviews (0-20): 10 reviews = 5, 10K reviews = 20
    - Finisher ratio (0-10)
    """
    score = 0.0
    score += min(50, _log10(stats.total_prs_merged) * 16)
    score += min(20, _log10(stats.total_issues_closed) * 6)
    score += min(20, _log10(stats.total_reviews_given) * 5)
    score += finisher_ratio(stats) * 10
    return min(score, PILLAR_CAP)


def calculate_craftsmanship_score(stats: ProfileStats, now: datetime | None = None) -> float:
    """Skill, consistency and longevity.

    - Commits (0-40): 100 commits = 16, 100K commits = 40
    - Language diversity (0-25): 1 language = 3, 5 languages = ~18.5
    - Current streak (0-20): linear, ~30 days for the full 20
    - Account maturity (0-15): 10 years = 7, capped at 15
    """
    language_count = len(stats.languages)

    score = 0.0
    score += min(40, _log10(stats.total_commits) * 8)
    score += min(25, language_count * 3 + _log10(language_count) * 5)
    score += min(20, stats.contribution_streak.current * 0.67)
    score += min(15, _log10(account_age_years(stats, now)) * 7)
    return min(score, PILLAR_CAP)
