"""Test configuration and fixtures.

This file contains fixtures used across all tests.
Database-backed fixtures run against a throwaway SQLite file unless
TEST_DATABASE_URL points somewhere else.
"""

import os
from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from gitivity.api.schemas.github import (
    ContributionStreak,
    LanguageShare,
    ProfileStats,
    RepositoryHealth,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


def pytest_configure(config):
    """Register integration test marker."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring database"
    )


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_stats() -> Callable[..., ProfileStats]:
    """Factory for ``ProfileStats`` with quiet defaults (everything near zero)."""

    def factory(**overrides: Any) -> ProfileStats:
        values: dict[str, Any] = {
            "username": "octocat",
            "name": "The Octocat",
            "avatar_url": "https://avatars.githubusercontent.com/u/583231",
            "bio": None,
            "followers": 0,
            "following": 0,
            "public_repos": 0,
            "total_stars_received": 0,
            "total_forks_received": 0,
            "total_commits": 0,
            "created_at": NOW - timedelta(days=365 * 2),
            "updated_at": NOW - timedelta(days=365),
            "languages": [],
            "total_prs_opened": 0,
            "total_prs_merged": 0,
            "total_issues_opened": 0,
            "total_issues_closed": 0,
            "total_reviews_given": 0,
            "repository_health": RepositoryHealth(),
            "contribution_streak": ContributionStreak(),
        }
        values.update(overrides)
        return ProfileStats(**values)

    return factory


@pytest.fixture
def languages() -> Callable[[int], list[LanguageShare]]:
    def factory(count: int) -> list[LanguageShare]:
        return [LanguageShare(name=f"Lang{i}", percentage=10) for i in range(count)]

    return factory


class FakeGitHubService:
    """Stands in for ``GitHubService``; records calls and replays outcomes."""

    def __init__(self) -> None:
        self.profiles: dict[str, ProfileStats] = {}
        self.errors: dict[str, Exception] = {}
        self.monolithic_errors: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.monolithic_calls: list[str] = []
        self.existing: set[str] = set()
        self.last_rate_limit = None

    async def fetch_profile(self, username: str) -> ProfileStats:
        self.calls.append(username)
        if username in self.errors:
            raise self.errors[username]
        return self.profiles[username]

    async def fetch_profile_monolithic(self, username: str) -> ProfileStats:
        self.monolithic_calls.append(username)
        if username in self.monolithic_errors:
            raise self.monolithic_errors[username]
        return self.profiles[username]

    async def user_exists(self, username: str) -> bool:
        return username.lower() in self.existing


@pytest.fixture
def fake_github() -> FakeGitHubService:
    return FakeGitHubService()


@pytest.fixture
def metrics():
    from gitivity.monitoring.metrics import MetricsCollector

    return MetricsCollector()


@pytest.fixture
def error_tracker():
    from gitivity.monitoring.error_tracker import ErrorTracker

    return ErrorTracker()


@pytest.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator:
    """Create a fresh database for each test."""
    from gitivity.db.database import create_engine
    from gitivity.db.models import Base

    url = os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'gitivity.db'}")
    test_engine = create_engine(url)

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_maker(db_engine):
    from gitivity.db.database import create_session_maker

    return create_session_maker(db_engine)


@pytest.fixture(scope="function")
def store(session_maker, metrics, error_tracker):
    from gitivity.services.profile_store import ProfileStore

    # SQLite only knows SERIALIZABLE; keep the driver default
    return ProfileStore(session_maker, isolation_level="", metrics=metrics, errors=error_tracker)


@pytest.fixture(scope="function")
def runtime(store, fake_github, metrics, error_tracker):
    from gitivity.services.runtime import GitivityRuntime

    return GitivityRuntime(
        store=store, github=fake_github, metrics=metrics, errors=error_tracker
    )


@pytest.fixture(scope="function")
async def client(runtime) -> AsyncGenerator:
    """Create a test client backed by the test runtime."""
    from httpx import ASGITransport, AsyncClient

    from gitivity.api.app import create_app

    app = create_app(runtime=runtime)

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
