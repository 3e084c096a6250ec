import asyncio
import time
from collections.abc import Callable
from typing import Any

import structlog

from gitivity.cache.memory import MemoryCache
from gitivity.core.constants import (
    GITHUB_DATA_TTL,
    GLOBAL_CACHE_SIZE,
    GLOBAL_CACHE_TTL,
    LEADERBOARD_CACHE_SIZE,
    LEADERBOARD_CACHE_TTL,
    PROFILE_CACHE_SIZE,
    PROFILE_CACHE_TTL,
    RANK_TTL,
    TOTAL_USERS_TTL,
)

logger = structlog.get_logger()


class CacheKeys:
    @staticmethod
    def profile(username: str) -> str:
        return f"profile:{username.lower()}"

    @staticmethod
    def user_rank(username: str, score: int) -> str:
        return f"rank:{username.lower()}:{score}"

    @staticmethod
    def user_rank_prefix(username: str) -> str:
        return f"rank:{username.lower()}:"

    @staticmethod
    def leaderboard(limit: int = 100) -> str:
        return f"leaderboard:{limit}"

    @staticmethod
    def github_data(username: str) -> str:
        return f"github:{username.lower()}"

    @staticmethod
    def total_users() -> str:
        return "stats:total_users"


class CacheClient:
    """Three independently sized caches behind one typed interface.

    - global: rank lookups, GitHub payloads and the total user count
    - profiles: analyzed profiles
    - leaderboard: rendered leaderboard pages
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self.global_cache = MemoryCache(GLOBAL_CACHE_SIZE, GLOBAL_CACHE_TTL, clock)
        self.profile_cache = MemoryCache(PROFILE_CACHE_SIZE, PROFILE_CACHE_TTL, clock)
        self.leaderboard_cache = MemoryCache(LEADERBOARD_CACHE_SIZE, LEADERBOARD_CACHE_TTL, clock)

    @property
    def tiers(self) -> dict[str, MemoryCache]:
        return {
            "global": self.global_cache,
            "profiles": self.profile_cache,
            "leaderboard": self.leaderboard_cache,
        }

    # Profiles
    def get_profile(self, username: str) -> Any | None:
        return self.profile_cache.get(CacheKeys.profile(username))

    def set_profile(self, username: str, data: Any, ttl_seconds: float = PROFILE_CACHE_TTL) -> None:
        self.profile_cache.set(CacheKeys.profile(username), data, ttl_seconds)

    def delete_profile(self, username: str) -> bool:
        return self.profile_cache.delete(CacheKeys.profile(username))

    # Ranks
    def get_user_rank(self, username: str, score: int) -> Any | None:
        return self.global_cache.get(CacheKeys.user_rank(username, score))

    def set_user_rank(
        self,
        username: str,
        score: int,
        rank_data: Any,
        ttl_seconds: float = RANK_TTL,
    ) -> None:
        self.global_cache.set(CacheKeys.user_rank(username, score), rank_data, ttl_seconds)

    # Leaderboard
    def get_leaderboard(self, limit: int = 100) -> Any | None:
        return self.leaderboard_cache.get(CacheKeys.leaderboard(limit))

    def set_leaderboard(
        self,
        data: Any,
        limit: int = 100,
        ttl_seconds: float = LEADERBOARD_CACHE_TTL,
    ) -> None:
        self.leaderboard_cache.set(CacheKeys.leaderboard(limit), data, ttl_seconds)

    # GitHub payloads
    def get_github_data(self, username: str) -> Any | None:
        return self.global_cache.get(CacheKeys.github_data(username))

    def set_github_data(self, username: str, data: Any, ttl_seconds: float = GITHUB_DATA_TTL) -> None:
        self.global_cache.set(CacheKeys.github_data(username), data, ttl_seconds)

    # Total users
    def get_total_users(self) -> int | None:
        return self.global_cache.get(CacheKeys.total_users())

    def set_total_users(self, count: int, ttl_seconds: float = TOTAL_USERS_TTL) -> None:
        self.global_cache.set(CacheKeys.total_users(), count, ttl_seconds)

    # Invalidation
    def invalidate_user(self, username: str) -> None:
        """Forget everything derived from one user's profile.

        Rank keys embed the score, which is unknown here, so every key with
        the user's prefix is removed. The leaderboard is cleared outright
        because any user's position may have moved.
        """
        self.profile_cache.delete(CacheKeys.profile(username))
        self.global_cache.delete(CacheKeys.github_data(username))

        prefix = CacheKeys.user_rank_prefix(username)
        for key in self.global_cache.keys():
            if key.startswith(prefix):
                self.global_cache.delete(key)

        self.global_cache.delete(CacheKeys.total_users())
        self.leaderboard_cache.clear()

    def clear_leaderboard(self) -> None:
        self.leaderboard_cache.clear()

    def clear_all(self) -> None:
        for tier in self.tiers.values():
            tier.clear()

    # Introspection
    def get_stats(self) -> dict[str, dict[str, Any]]:
        return {name: tier.get_stats() for name, tier in self.tiers.items()}

    def cleanup(self) -> dict[str, int]:
        return {name: tier.cleanup() for name, tier in self.tiers.items()}

    def export(self) -> dict[str, dict[str, Any]]:
        return {
            name: {"stats": tier.get_stats(), "entries": tier.export()}
            for name, tier in self.tiers.items()
        }

    async def run_periodic_cleanup(self, interval_seconds: float = 300) -> None:
        """Sweep expired entries forever; cancel the task to stop."""
        while True:
            await asyncio.sleep(interval_seconds)
            cleaned = self.cleanup()
            if any(cleaned.values()):
                logger.debug("Expired cache entries swept", **cleaned)
