from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import structlog

from gitivity.api.schemas.github import ProfileStats
from gitivity.api.schemas.profile import GitivityProfileResponse, GitivityStats
from gitivity.api.schemas.scoring import ScoreBreakdown
from gitivity.cache.client import CacheClient
from gitivity.core.constants import PROFILE_FRESHNESS_HOURS
from gitivity.core.errors import (
    DatabaseError,
    GitHubAPIError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubTransientError,
    GitHubValidationError,
)
from gitivity.db.models.profile import GitivityProfile
from gitivity.monitoring.metrics import MetricsCollector
from gitivity.monitoring.metrics import metrics as default_metrics
from gitivity.scoring import SCORE_VERSION, calculate_gitivity_score, finisher_ratio
from gitivity.services.github_service import GitHubService
from gitivity.services.profile_store import ProfileStore, ensure_utc
from gitivity.services.rank_service import RankService

logger = structlog.get_logger()


def build_gitivity_stats(stats: ProfileStats, breakdown: ScoreBreakdown) -> GitivityStats:
    """Assemble the persisted stats blob from GitHub data and its score."""
    return GitivityStats(
        score_version=SCORE_VERSION,
        followers=stats.followers,
        following=stats.following,
        public_repos=stats.public_repos,
        total_stars_received=stats.total_stars_received,
        total_forks_received=stats.total_forks_received,
        total_commits=stats.total_commits,
        languages=stats.languages,
        bio=stats.bio,
        name=stats.name,
        created_at=stats.created_at,
        last_updated=stats.updated_at,
        total_prs_opened=stats.total_prs_opened,
        total_prs_merged=stats.total_prs_merged,
        total_issues_opened=stats.total_issues_opened,
        total_issues_closed=stats.total_issues_closed,
        total_reviews_given=stats.total_reviews_given,
        repository_health=stats.repository_health,
        contribution_streak=stats.contribution_streak,
        score_breakdown=breakdown,
        finisher_ratio=finisher_ratio(stats),
        raw_repo_data=stats.raw_repo_data,
        raw_contributions_data=stats.raw_contributions_data,
    )


def stats_from_stored(profile: GitivityProfile) -> ProfileStats:
    """Rebuild the scoring input from a persisted row."""
    stored = dict(profile.stats or {})
    for derived in ("score_version", "score_breakdown", "finisher_ratio"):
        stored.pop(derived, None)
    updated_at = stored.pop("last_updated", None) or profile.updated_at
    return ProfileStats(
        username=profile.username,
        avatar_url=profile.avatar_url or "",
        updated_at=updated_at,
        **stored,
    )


class ProfileService:
    """Analyze a GitHub user: cache, database, GitHub, score, persist, rank."""

    def __init__(
        self,
        store: ProfileStore,
        cache: CacheClient,
        github: GitHubService,
        ranks: RankService,
        clock: Callable[[], datetime] | None = None,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.github = github
        self.ranks = ranks
        self._clock = clock or (lambda: datetime.now(UTC))
        self.metrics = metrics or default_metrics

    async def analyze_user(
        self,
        username: str,
        force_refresh: bool = False,
    ) -> GitivityProfileResponse | None:
        """Return the scored profile for ``username`` or ``None`` if it does not exist.

        Steps:
        1. Profile cache hit (skipped when forced)
        2. Database row younger than 24h (skipped when forced)
        3. Live GitHub data, from the GitHub cache when possible
        4. On rate limiting, the last persisted row regardless of age
        5. Score, upsert, invalidate and repopulate caches, attach rank
        """
        with self.metrics.timed("analyze_user"):
            return await self._analyze(username, force_refresh)

    async def _analyze(
        self,
        username: str,
        force_refresh: bool,
    ) -> GitivityProfileResponse | None:
        key = username.lower()

        if not force_refresh:
            cached = self.cache.get_profile(key)
            if cached is not None:
                logger.debug("Profile cache hit", username=key)
                return await self._with_rank(cached)

            fresh = await self._load_fresh(key)
            if fresh is not None:
                self.cache.set_profile(key, fresh)
                return await self._with_rank(fresh)

        try:
            stats = await self._fetch_stats(username)
        except GitHubNotFoundError:
            logger.info("GitHub user not found", username=key)
            return None
        except GitHubRateLimitError as rate_limited:
            try:
                stale = await self.store.find_by_username(key)
            except DatabaseError as e:
                logger.error(
                    "Stored profile lookup failed while rate limited",
                    username=key,
                    error=str(e),
                )
                raise rate_limited from e
            if stale is None:
                raise
            logger.warning(
                "Rate limited by GitHub, serving stored profile",
                username=key,
                updated_at=stale.updated_at.isoformat(),
            )
            return await self._with_rank(GitivityProfileResponse.model_validate(stale))

        breakdown = calculate_gitivity_score(stats, self._clock())
        gitivity_stats = build_gitivity_stats(stats, breakdown)

        row = await self.store.upsert(
            username=key,
            score=breakdown.total,
            score_version=SCORE_VERSION,
            stats=gitivity_stats.model_dump(mode="json"),
            avatar_url=stats.avatar_url,
        )
        profile = GitivityProfileResponse.model_validate(row)

        # Only after the write is committed
        self.cache.invalidate_user(key)
        self.cache.set_profile(key, profile)

        logger.info(
            "Profile analyzed",
            username=key,
            score=breakdown.total,
            creator=breakdown.creator_score,
            collaborator=breakdown.collaborator_score,
            craftsmanship=breakdown.craftsmanship_score,
            multipliers=len(breakdown.multipliers),
        )
        return await self._with_rank(profile)

    async def _load_fresh(self, key: str) -> GitivityProfileResponse | None:
        row = await self.store.find_by_username(key)
        if row is None:
            return None
        cutoff = self._clock() - timedelta(hours=PROFILE_FRESHNESS_HOURS)
        if ensure_utc(row.updated_at) < cutoff:
            return None
        logger.debug("Serving stored profile", username=key)
        return GitivityProfileResponse.model_validate(row)

    async def _fetch_stats(self, username: str) -> ProfileStats:
        key = username.lower()
        cached = self.cache.get_github_data(key)
        if cached is not None:
            return cached

        try:
            stats = await self.github.fetch_profile(username)
        except (GitHubTransientError, GitHubValidationError, GitHubAPIError) as e:
            logger.warning(
                "Parallel GitHub fetch failed, retrying with single query",
                username=key,
                error=str(e),
            )
            stats = await self.github.fetch_profile_monolithic(username)

        self.cache.set_github_data(key, stats)
        return stats

    async def _with_rank(self, profile: GitivityProfileResponse) -> GitivityProfileResponse:
        rank_info = await self.ranks.get_user_rank(profile.score, profile.username)
        return profile.with_rank(rank_info)
