import structlog

from gitivity.api.schemas.leaderboard import LeaderboardEntry
from gitivity.api.schemas.profile import ProfileSummary
from gitivity.cache.client import CacheClient
from gitivity.core.constants import DEFAULT_LEADERBOARD_LIMIT
from gitivity.services.profile_store import ProfileStore

logger = structlog.get_logger()


class LeaderboardService:
    """Service for querying the global leaderboard."""

    def __init__(self, store: ProfileStore, cache: CacheClient) -> None:
        self.store = store
        self.cache = cache

    async def get_total_users(self) -> int:
        total = self.cache.get_total_users()
        if total is None:
            total = await self.store.count()
            self.cache.set_total_users(total)
        return total

    async def get_leaderboard(
        self,
        limit: int = DEFAULT_LEADERBOARD_LIMIT,
    ) -> tuple[list[LeaderboardEntry], int]:
        """Top profiles by score, cached per limit."""
        entries = self.cache.get_leaderboard(limit)
        if entries is None:
            profiles = await self.store.top(limit)
            entries = []
            for position, profile in enumerate(profiles, start=1):
                stats = profile.stats or {}
                entries.append(
                    LeaderboardEntry(
                        rank=position,
                        username=profile.username,
                        score=profile.score,
                        avatar_url=profile.avatar_url,
                        public_repos=stats.get("public_repos", 0),
                        total_stars_received=stats.get("total_stars_received", 0),
                        followers=stats.get("followers", 0),
                        updated_at=profile.updated_at,
                    )
                )
            self.cache.set_leaderboard(entries, limit)
            logger.debug("Leaderboard loaded", limit=limit, entries=len(entries))

        total = await self.get_total_users()
        return entries, total

    async def check_user(self, username: str) -> ProfileSummary | None:
        """Persisted summary for one user, bypassing every cache."""
        profile = await self.store.find_by_username(username)
        if profile is None:
            return None
        return ProfileSummary.model_validate(profile)
