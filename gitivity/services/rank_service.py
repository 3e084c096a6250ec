import structlog

from gitivity.api.schemas.profile import RankInfo
from gitivity.cache.client import CacheClient
from gitivity.core.constants import RANK_FALLBACK_TTL, RANK_TTL
from gitivity.services.profile_store import ProfileStore

logger = structlog.get_logger()


class RankService:
    """Leaderboard position of a single user."""

    def __init__(self, store: ProfileStore, cache: CacheClient) -> None:
        self.store = store
        self.cache = cache

    async def get_user_rank(self, score: int, username: str) -> RankInfo:
        """Return ``{rank, total_users}``; never raises.

        A cached rank is reused but the total is always read fresh so the
        user count never looks stale.
        """
        cached = self.cache.get_user_rank(username, score)
        if cached is not None:
            try:
                total_users = await self.store.count()
            except Exception as e:
                logger.warning("Failed to refresh total users", username=username, error=str(e))
                return cached
            return RankInfo(rank=cached.rank, total_users=total_users)

        try:
            ranked = await self.store.rank_of(username)
        except Exception as e:
            logger.warning("Rank window query failed, using fallback", username=username, error=str(e))
            ranked = None

        if ranked is not None:
            rank_info = RankInfo(rank=ranked[0], total_users=ranked[1])
            self.cache.set_user_rank(username, score, rank_info, RANK_TTL)
            return rank_info

        return await self._fallback_rank(score, username)

    async def _fallback_rank(self, score: int, username: str) -> RankInfo:
        try:
            higher = await self.store.count_higher(score)
            total_users = await self.store.count()
        except Exception as e:
            logger.error("Error calculating user rank", username=username, score=score, error=str(e))
            return RankInfo(rank=0, total_users=0)

        rank_info = RankInfo(rank=higher + 1, total_users=total_users)
        # Shorter TTL so a recovered window query takes over quickly
        self.cache.set_user_rank(username, score, rank_info, RANK_FALLBACK_TTL)
        return rank_info
