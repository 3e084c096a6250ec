from datetime import datetime

from gitivity.api.schemas.github import ProfileStats
from gitivity.api.schemas.scoring import Achievement
from gitivity.scoring.pillars import account_age_years

# Each ladder awards at most one tier: the highest threshold met.
# (threshold, id, name, icon)
STAR_LADDER = [
    (10000, "viral-creator", "Viral Creator", "🌟"),
    (1000, "star-creator", "Star Creator", "⭐"),
    (100, "rising-star", "Rising Star", "✨"),
]
FORK_LADDER = [
    (50000, "ecosystem-builder", "Ecosystem Builder", "🚀"),
    (1000, "community-favorite", "Community Favorite", "💖"),
]
FOLLOWER_LADDER = [
    (10000, "influencer", "GitHub Influencer", "👑"),
    (1000, "community-leader", "Community Leader", "👥"),
]
LANGUAGE_LADDER = [
    (10, "polyglot-master", "Polyglot Master", "🌍"),
    (5, "polyglot", "Polyglot", "🗣️"),
]
STREAK_LADDER = [
    (100, "consistency-master", "Consistency Master", "🔥"),
    (30, "consistent", "Consistent Contributor", "📈"),
]
VETERAN_YEARS = 10


def _climb(ladder: list[tuple[int, str, str, str]], value: float) -> tuple[str, str, str] | None:
    for threshold, achievement_id, name, icon in ladder:
        if value >= threshold:
            return achievement_id, name, icon
    return None


def calculate_achievements(stats: ProfileStats, now: datetime | None = None) -> list[Achievement]:
    """Evaluate every achievement ladder against a user's statistics.

    Categories:
    - Impact: stars received (Rising Star -> Star Creator -> Viral Creator)
    - Adoption: forks received (Community Favorite -> Ecosystem Builder)
    - Influence: followers (Community Leader -> GitHub Influencer)
    - Versatility: languages (Polyglot -> Polyglot Master)
    - Experience: account age (GitHub Veteran)
    - Consistency: current streak (Consistent Contributor -> Consistency Master)
    """
    achievements: list[Achievement] = []

    stars = stats.total_stars_received
    tier = _climb(STAR_LADDER, stars)
    if tier:
        achievement_id, name, icon = tier
        description = f"{stars:,} stars earned"
        if achievement_id == "viral-creator":
            description = f"{stars:,} stars - Exceptional impact"
        achievements.append(
            Achievement(id=achievement_id, name=name, description=description, icon=icon)
        )

    forks = stats.total_forks_received
    tier = _climb(FORK_LADDER, forks)
    if tier:
        achievement_id, name, icon = tier
        description = f"{forks:,} forks"
        if achievement_id == "ecosystem-builder":
            description = f"{forks:,} forks - Massive adoption"
        achievements.append(
            Achievement(id=achievement_id, name=name, description=description, icon=icon)
        )

    tier = _climb(FOLLOWER_LADDER, stats.followers)
    if tier:
        achievement_id, name, icon = tier
        achievements.append(
            Achievement(
                id=achievement_id,
                name=name,
                description=f"{stats.followers:,} followers",
                icon=icon,
            )
        )

    language_count = len(stats.languages)
    tier = _climb(LANGUAGE_LADDER, language_count)
    if tier:
        achievement_id, name, icon = tier
        verb = "Expert in" if achievement_id == "polyglot-master" else "Proficient in"
        achievements.append(
            Achievement(
                id=achievement_id,
                name=name,
                description=f"{verb} {language_count} languages",
                icon=icon,
            )
        )

    age = account_age_years(stats, now)
    if age >= VETERAN_YEARS:
        achievements.append(
            Achievement(
                id="veteran",
                name="GitHub Veteran",
                description=f"{int(age)} years of experience",
                icon="🏛️",
            )
        )

    streak = stats.contribution_streak.current
    tier = _climb(STREAK_LADDER, streak)
    if tier:
        achievement_id, name, icon = tier
        achievements.append(
            Achievement(
                id=achievement_id,
                name=name,
                description=f"{streak} day streak",
                icon=icon,
            )
        )

    return achievements
