import pytest

from gitivity.api.schemas.profile import RankInfo
from gitivity.cache.client import CacheClient
from gitivity.core.errors import DatabaseError
from gitivity.services.rank_service import RankService


class FakeStore:
    def __init__(self) -> None:
        self.ranked: tuple[int, int] | None = (3, 10)
        self.higher = 4
        self.total = 10
        self.rank_error: Exception | None = None
        self.count_error: Exception | None = None
        self.rank_calls = 0

    async def rank_of(self, username: str) -> tuple[int, int] | None:
        self.rank_calls += 1
        if self.rank_error:
            raise self.rank_error
        return self.ranked

    async def count_higher(self, score: int) -> int:
        if self.count_error:
            raise self.count_error
        return self.higher

    async def count(self) -> int:
        if self.count_error:
            raise self.count_error
        return self.total


class TestRankService:
    """Tests for rank lookup and its fallbacks."""

    @pytest.fixture
    def store(self) -> FakeStore:
        return FakeStore()

    @pytest.fixture
    def cache(self) -> CacheClient:
        return CacheClient()

    @pytest.fixture
    def ranks(self, store: FakeStore, cache: CacheClient) -> RankService:
        return RankService(store, cache)

    @pytest.mark.asyncio
    async def test_window_query_result_is_cached(
        self, ranks: RankService, store: FakeStore, cache: CacheClient
    ) -> None:
        assert await ranks.get_user_rank(50, "octocat") == RankInfo(rank=3, total_users=10)
        assert cache.get_user_rank("octocat", 50) == RankInfo(rank=3, total_users=10)

        await ranks.get_user_rank(50, "octocat")
        assert store.rank_calls == 1

    @pytest.mark.asyncio
    async def test_cached_rank_uses_fresh_total(self, ranks: RankService, store: FakeStore) -> None:
        await ranks.get_user_rank(50, "octocat")
        store.total = 25

        assert await ranks.get_user_rank(50, "octocat") == RankInfo(rank=3, total_users=25)

    @pytest.mark.asyncio
    async def test_new_score_is_a_new_lookup(self, ranks: RankService, store: FakeStore) -> None:
        await ranks.get_user_rank(50, "octocat")
        await ranks.get_user_rank(60, "octocat")
        assert store.rank_calls == 2

    @pytest.mark.asyncio
    async def test_fallback_when_row_missing(self, ranks: RankService, store: FakeStore) -> None:
        store.ranked = None
        assert await ranks.get_user_rank(50, "octocat") == RankInfo(rank=5, total_users=10)

    @pytest.mark.asyncio
    async def test_fallback_when_window_query_fails(
        self, ranks: RankService, store: FakeStore
    ) -> None:
        store.rank_error = DatabaseError("window functions unavailable")
        assert await ranks.get_user_rank(50, "octocat") == RankInfo(rank=5, total_users=10)

    @pytest.mark.asyncio
    async def test_fallback_has_shorter_ttl(
        self, store: FakeStore
    ) -> None:
        clock_now = [1000.0]
        cache = CacheClient(clock=lambda: clock_now[0])
        ranks = RankService(store, cache)
        store.ranked = None

        await ranks.get_user_rank(50, "octocat")
        clock_now[0] += 61

        assert cache.get_user_rank("octocat", 50) is None

    @pytest.mark.asyncio
    async def test_total_failure_returns_zeroes(self, ranks: RankService, store: FakeStore) -> None:
        store.rank_error = DatabaseError("down")
        store.count_error = DatabaseError("down")
        assert await ranks.get_user_rank(50, "octocat") == RankInfo(rank=0, total_users=0)
