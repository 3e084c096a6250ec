import asyncio
import contextlib

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gitivity.api.schemas.profile import GitivityProfileResponse
from gitivity.cache.client import CacheClient
from gitivity.core.config import settings
from gitivity.core.constants import ERROR_CLEANUP_INTERVAL
from gitivity.monitoring.error_tracker import ErrorTracker
from gitivity.monitoring.error_tracker import error_tracker as default_error_tracker
from gitivity.monitoring.metrics import MetricsCollector
from gitivity.monitoring.metrics import metrics as default_metrics
from gitivity.services.coalescer import RequestCoalescer
from gitivity.services.github_service import GitHubService
from gitivity.services.leaderboard_service import LeaderboardService
from gitivity.services.profile_service import ProfileService
from gitivity.services.profile_store import ProfileStore
from gitivity.services.rank_service import RankService

logger = structlog.get_logger()


class GitivityRuntime:
    """Process-wide services: caches, in-flight registry and their users.

    One instance per application (or per test), held on ``app.state``.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        store: ProfileStore | None = None,
        github: GitHubService | None = None,
        cache: CacheClient | None = None,
        coalescer: RequestCoalescer | None = None,
        metrics: MetricsCollector | None = None,
        errors: ErrorTracker | None = None,
    ) -> None:
        self.metrics = metrics or default_metrics
        self.errors = errors or default_error_tracker
        if store is None:
            if session_maker is None:
                raise ValueError("Either session_maker or store is required")
            store = ProfileStore(session_maker, metrics=self.metrics, errors=self.errors)
        self.store = store
        self.github = github or GitHubService(metrics=self.metrics, errors=self.errors)
        self.cache = cache or CacheClient()
        self.coalescer = coalescer or RequestCoalescer()
        self.ranks = RankService(self.store, self.cache)
        self.profiles = ProfileService(
            self.store, self.cache, self.github, self.ranks, metrics=self.metrics
        )
        self.leaderboard = LeaderboardService(self.store, self.cache)
        self._maintenance_tasks: list[asyncio.Task] = []

    async def analyze_user(
        self,
        username: str,
        force_refresh: bool = False,
    ) -> GitivityProfileResponse | None:
        """Analyze a user, sharing work with any concurrent request for the same name."""
        return await self.coalescer.run(
            username,
            lambda: self.profiles.analyze_user(username, force_refresh),
            force=force_refresh,
        )

    @property
    def maintenance_running(self) -> bool:
        return bool(self._maintenance_tasks)

    def start_maintenance(
        self,
        interval_seconds: float | None = None,
        error_interval_seconds: float = ERROR_CLEANUP_INTERVAL,
    ) -> None:
        """Start sweeping expired cache entries and stale error reports."""
        if self._maintenance_tasks:
            return
        self._maintenance_tasks = [
            asyncio.create_task(
                self.cache.run_periodic_cleanup(interval_seconds or settings.cache_cleanup_interval)
            ),
            asyncio.create_task(self.errors.run_periodic_cleanup(error_interval_seconds)),
        ]
        logger.info("Maintenance tasks started")

    async def stop_maintenance(self) -> None:
        tasks, self._maintenance_tasks = self._maintenance_tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if tasks:
            logger.info("Maintenance tasks stopped")
