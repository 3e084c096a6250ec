import asyncio
from datetime import UTC, datetime

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gitivity.core.config import settings
from gitivity.core.constants import DB_TRANSACTION_TIMEOUT
from gitivity.core.errors import DatabaseError
from gitivity.db.models.profile import GitivityProfile
from gitivity.monitoring.error_tracker import ErrorTracker
from gitivity.monitoring.error_tracker import error_tracker as default_error_tracker
from gitivity.monitoring.metrics import MetricsCollector
from gitivity.monitoring.metrics import metrics as default_metrics

logger = structlog.get_logger()


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops the offset)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class ProfileStore:
    """Persistence for analyzed profiles, keyed by lowercased username.

    Every call is timed as ``database_query`` labelled with its operation.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        isolation_level: str | None = None,
        transaction_timeout: float = DB_TRANSACTION_TIMEOUT,
        metrics: MetricsCollector | None = None,
        errors: ErrorTracker | None = None,
    ) -> None:
        self.session_maker = session_maker
        self.isolation_level = (
            settings.database_isolation_level if isolation_level is None else isolation_level
        ) or None
        self.transaction_timeout = transaction_timeout
        self.metrics = metrics or default_metrics
        self.errors = errors or default_error_tracker

    def _timed(self, operation: str):
        return self.metrics.timed("database_query", {"operation": operation})

    async def find_by_username(self, username: str) -> GitivityProfile | None:
        key = username.lower()
        try:
            with self._timed("find_by_username"):
                async with self.session_maker() as session:
                    result = await session.execute(
                        select(GitivityProfile).where(GitivityProfile.username == key)
                    )
                    return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            error = DatabaseError(f"Loading profile {key} failed: {e}")
            self.errors.track(
                error, operation="find_by_username", component="database", username=key
            )
            raise error from e

    async def upsert(
        self,
        username: str,
        score: int,
        score_version: int,
        stats: dict,
        avatar_url: str | None,
    ) -> GitivityProfile:
        """Create or update one profile inside a single bounded transaction."""
        key = username.lower()
        now = datetime.now(UTC)
        try:
            with self._timed("upsert"):
                async with (
                    asyncio.timeout(self.transaction_timeout),
                    self.session_maker() as session,
                ):
                    if self.isolation_level:
                        await session.connection(
                            execution_options={"isolation_level": self.isolation_level}
                        )
                    result = await session.execute(
                        select(GitivityProfile)
                        .where(GitivityProfile.username == key)
                        .with_for_update()
                    )
                    profile = result.scalar_one_or_none()
                    if profile is None:
                        profile = GitivityProfile(username=key, created_at=now)
                        session.add(profile)

                    profile.score = score
                    profile.score_version = score_version
                    profile.stats = stats
                    profile.avatar_url = avatar_url
                    profile.updated_at = now

                    await session.commit()
                    return profile
        except TimeoutError as e:
            error = DatabaseError(f"Saving profile {key} timed out")
            self.errors.track(error, operation="upsert", component="database", username=key)
            raise error from e
        except SQLAlchemyError as e:
            error = DatabaseError(f"Saving profile {key} failed: {e}")
            self.errors.track(error, operation="upsert", component="database", username=key)
            raise error from e

    async def count(self) -> int:
        with self._timed("count"):
            async with self.session_maker() as session:
                result = await session.execute(select(func.count(GitivityProfile.id)))
                return result.scalar() or 0

    async def count_higher(self, score: int) -> int:
        with self._timed("count_higher"):
            async with self.session_maker() as session:
                result = await session.execute(
                    select(func.count(GitivityProfile.id)).where(GitivityProfile.score > score)
                )
                return result.scalar() or 0

    async def rank_of(self, username: str) -> tuple[int, int] | None:
        """Rank by score in one round trip; ties are ordered by username."""
        ranked = select(
            GitivityProfile.username,
            func.row_number()
            .over(order_by=(GitivityProfile.score.desc(), GitivityProfile.username.asc()))
            .label("rank"),
        ).subquery()
        total_users = select(func.count(GitivityProfile.id)).scalar_subquery()

        with self._timed("rank_of"):
            async with self.session_maker() as session:
                result = await session.execute(
                    select(ranked.c.rank, total_users.label("total_users")).where(
                        ranked.c.username == username.lower()
                    )
                )
                row = result.first()
        if row is None:
            return None
        return int(row.rank), int(row.total_users)

    async def top(self, limit: int) -> list[GitivityProfile]:
        with self._timed("top"):
            async with self.session_maker() as session:
                result = await session.execute(
                    select(GitivityProfile)
                    .order_by(GitivityProfile.score.desc(), GitivityProfile.username.asc())
                    .limit(limit)
                )
                return list(result.scalars().all())
