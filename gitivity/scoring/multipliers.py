from datetime import UTC, datetime

from gitivity.api.schemas.github import ProfileStats
from gitivity.api.schemas.scoring import Achievement, Multiplier

# Achievement id -> (multiplier name, value)
ACHIEVEMENT_MULTIPLIERS: dict[str, tuple[str, float]] = {
    "viral-creator": ("Viral Creator Elite", 1.5),
    "ecosystem-builder": ("Ecosystem Builder Elite", 1.4),
    "influencer": ("GitHub Influencer", 1.3),
    "star-creator": ("Star Creator", 1.25),
    "community-favorite": ("Community Favorite", 1.2),
    "veteran": ("GitHub Veteran", 1.2),
    "community-leader": ("Community Leader", 1.15),
    "polyglot-master": ("Polyglot Master", 1.15),
    "consistency-master": ("Consistency Master", 1.15),
    "rising-star": ("Rising Star", 1.1),
    "polyglot": ("Polyglot", 1.08),
    "consistent": ("Consistent Contributor", 1.05),
}

# (max days since last update, name, value), first match wins
RECENCY_MULTIPLIERS = [
    (7, "Active This Week", 1.1),
    (30, "Recent Activity", 1.05),
    (90, "Active Developer", 1.02),
]


def recency_multiplier(stats: ProfileStats, now: datetime | None = None) -> Multiplier | None:
    now = now or datetime.now(UTC)
    days_since_update = (now - stats.updated_at).total_seconds() / 86400
    for max_days, name, value in RECENCY_MULTIPLIERS:
        if days_since_update < max_days:
            return Multiplier(name=name, value=value)
    return None


def calculate_multipliers(
    stats: ProfileStats,
    achievements: list[Achievement],
    now: datetime | None = None,
) -> list[Multiplier]:
    """One multiplier per earned achievement plus at most one for recency."""
    multipliers: list[Multiplier] = []

    for achievement in achievements:
        if not achievement.earned:
            continue
        entry = ACHIEVEMENT_MULTIPLIERS.get(achievement.id)
        if entry:
            name, value = entry
            multipliers.append(Multiplier(name=name, value=value))

    recency = recency_multiplier(stats, now)
    if recency:
        multipliers.append(recency)

    return multipliers
