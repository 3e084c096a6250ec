"""Tests for the GitHub client.

HTTP traffic is mocked with respx; retries run without waiting.
"""

import json
from datetime import UTC, datetime

import httpx
import pytest
import respx
from httpx import Response
from tenacity import wait_none

from gitivity.core.errors import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubTransientError,
    GitHubValidationError,
)
from gitivity.monitoring.error_tracker import ErrorTracker
from gitivity.monitoring.metrics import MetricsCollector
from gitivity.services.github_service import (
    GitHubService,
    build_profile_stats,
    language_distribution,
)

GRAPHQL_URL = "https://api.github.com/graphql"
REST_URL = "https://api.github.com"


def repo(stars: int, forks: int, language: str | None, fork: bool = False, issues: int = 0) -> dict:
    return {
        "name": f"repo-{stars}",
        "stargazerCount": stars,
        "forkCount": forks,
        "primaryLanguage": {"name": language} if language else None,
        "isFork": fork,
        "isPrivate": False,
        "issues": {"totalCount": issues},
        "pullRequests": {"totalCount": 0},
    }


BASIC_USER = {
    "login": "octocat",
    "name": "The Octocat",
    "avatarUrl": "https://avatars.githubusercontent.com/u/583231",
    "bio": "GitHub mascot",
    "followers": {"totalCount": 1200},
    "following": {"totalCount": 9},
    "createdAt": "2015-06-01T12:00:00Z",
    "updatedAt": "2025-05-30T12:00:00Z",
}
CONTRIBUTIONS = {
    "totalCommitContributions": 1000,
    "totalIssueContributions": 12,
    "totalPullRequestContributions": 30,
    "totalPullRequestReviewContributions": 7,
}
REPOSITORIES = {
    "totalCount": 4,
    "nodes": [
        repo(120, 10, "Python"),
        repo(30, 5, "Go"),
        repo(5000, 900, "Python", fork=True),
        repo(2, 0, None, issues=3),
    ],
}
ISSUES_AND_PRS = {
    "issues": {"totalCount": 15},
    "pullRequests": {"totalCount": 40},
}
RATE_LIMIT = {"remaining": 4999, "resetAt": "2025-06-01T13:00:00Z"}


MONOLITHIC_PAYLOAD = {
    "data": {
        "user": {
            **BASIC_USER,
            **ISSUES_AND_PRS,
            "repositories": REPOSITORIES,
            "contributionsCollection": CONTRIBUTIONS,
        },
        "rateLimit": RATE_LIMIT,
    }
}


def graphql_router(overrides: dict[str, Response] | None = None):
    """Answer each query by its operation name."""
    payloads: dict[str, dict | Response] = {
        "GetBasicUserData": {"data": {"user": BASIC_USER}},
        "GetContributionsData": {"data": {"user": {"contributionsCollection": CONTRIBUTIONS}}},
        "GetRepositoriesData": {"data": {"user": {"repositories": REPOSITORIES}}},
        "GetIssuesAndPRsData": {"data": {"user": ISSUES_AND_PRS, "rateLimit": RATE_LIMIT}},
        "GetUserProfile": MONOLITHIC_PAYLOAD,
    }
    payloads.update(overrides or {})

    def handler(request: httpx.Request) -> Response:
        query = json.loads(request.content)["query"]
        for operation, payload in payloads.items():
            if f"query {operation}(" in query:
                if isinstance(payload, Response):
                    return payload
                return Response(200, json=payload)
        raise AssertionError(f"Unexpected query: {query}")

    return handler


@pytest.fixture
def service(metrics: MetricsCollector, error_tracker: ErrorTracker) -> GitHubService:
    return GitHubService(
        token="test-token",
        graphql_url=GRAPHQL_URL,
        api_base_url=REST_URL,
        retry_wait=wait_none(),
        metrics=metrics,
        errors=error_tracker,
    )


class TestNormalization:
    """Tests for turning GraphQL payloads into profile stats."""

    def test_forks_excluded_from_totals(self) -> None:
        now = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
        stats = build_profile_stats(BASIC_USER, CONTRIBUTIONS, REPOSITORIES, ISSUES_AND_PRS, now)

        assert stats.total_stars_received == 152
        assert stats.total_forks_received == 15
        assert stats.public_repos == 4

    def test_field_mapping(self) -> None:
        now = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
        stats = build_profile_stats(BASIC_USER, CONTRIBUTIONS, REPOSITORIES, ISSUES_AND_PRS, now)

        assert stats.username == "octocat"
        assert stats.followers == 1200
        assert stats.total_commits == 1000
        assert stats.total_prs_opened == 40
        assert stats.total_prs_merged == 30
        assert stats.total_issues_opened == 15
        assert stats.total_issues_closed == 12
        assert stats.total_reviews_given == 7
        assert stats.created_at == datetime(2015, 6, 1, 12, 0, tzinfo=UTC)

    def test_repository_health_is_binary(self) -> None:
        stats = build_profile_stats(BASIC_USER, CONTRIBUTIONS, REPOSITORIES, ISSUES_AND_PRS)
        assert stats.repository_health.open_issues == 3
        assert stats.repository_health.ratio == 0.0

        healthy = {"totalCount": 1, "nodes": [repo(1, 0, "Rust")]}
        stats = build_profile_stats(BASIC_USER, CONTRIBUTIONS, healthy, ISSUES_AND_PRS)
        assert stats.repository_health.ratio == 1.0

    def test_streak_estimated_from_yearly_commits(self) -> None:
        """1000 commits over ten years is 100 per year."""
        now = datetime(2025, 5, 29, 12, 0, tzinfo=UTC)
        stats = build_profile_stats(BASIC_USER, CONTRIBUTIONS, REPOSITORIES, ISSUES_AND_PRS, now)
        assert stats.contribution_streak.current == 10
        assert stats.contribution_streak.longest == 12

    def test_language_distribution(self) -> None:
        shares = language_distribution(REPOSITORIES["nodes"])
        assert [(s.name, s.percentage) for s in shares] == [("Python", 67), ("Go", 33)]

    def test_language_distribution_top_five(self) -> None:
        repos = [repo(0, 0, f"Lang{i}") for i in range(7)]
        assert len(language_distribution(repos)) == 5

    def test_language_distribution_empty(self) -> None:
        assert language_distribution([repo(0, 0, None)]) == []


class TestFetchProfile:
    """Tests for the parallel profile fetch."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_parallel_fetch(self, service: GitHubService) -> None:
        route = respx.post(GRAPHQL_URL).mock(side_effect=graphql_router())

        stats = await service.fetch_profile("octocat")

        assert route.call_count == 4
        assert stats.total_stars_received == 152
        assert stats.total_prs_opened == 40
        request = route.calls[0].request
        assert request.headers["authorization"] == "Bearer test-token"

    @respx.mock
    @pytest.mark.asyncio
    async def test_records_rate_limit(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(side_effect=graphql_router())

        await service.fetch_profile("octocat")

        assert service.last_rate_limit is not None
        assert service.last_rate_limit.remaining == 4999

    @respx.mock
    @pytest.mark.asyncio
    async def test_partial_failure_uses_defaults(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(
            side_effect=graphql_router(
                {
                    "GetRepositoriesData": Response(
                        200, json={"errors": [{"message": "Something went wrong"}]}
                    ),
                    "GetContributionsData": Response(
                        200, json={"data": {"user": {"contributionsCollection": {}}}}
                    ),
                }
            )
        )

        stats = await service.fetch_profile("octocat")

        assert stats.public_repos == 0
        assert stats.total_stars_received == 0
        assert stats.languages == []
        assert stats.total_commits == 0
        assert stats.total_prs_opened == 40

    @respx.mock
    @pytest.mark.asyncio
    async def test_basic_failure_is_fatal(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(
            side_effect=graphql_router(
                {"GetBasicUserData": Response(200, json={"data": {"user": None}})}
            )
        )

        with pytest.raises(GitHubNotFoundError):
            await service.fetch_profile("ghost")

    @respx.mock
    @pytest.mark.asyncio
    async def test_invalid_basic_payload(self, service: GitHubService) -> None:
        broken = {**BASIC_USER, "followers": None}
        respx.post(GRAPHQL_URL).mock(
            side_effect=graphql_router(
                {"GetBasicUserData": Response(200, json={"data": {"user": broken}})}
            )
        )

        with pytest.raises(GitHubValidationError):
            await service.fetch_profile("octocat")

    @respx.mock
    @pytest.mark.asyncio
    async def test_monolithic_fetch(self, service: GitHubService) -> None:
        route = respx.post(GRAPHQL_URL).mock(side_effect=graphql_router())

        stats = await service.fetch_profile_monolithic("octocat")

        assert route.call_count == 1
        assert stats.total_stars_received == 152
        assert stats.total_reviews_given == 7


class TestErrorMapping:
    """Tests for HTTP and GraphQL error translation."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_unauthorized(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(return_value=Response(401))
        with pytest.raises(GitHubAuthError):
            await service.fetch_profile_monolithic("octocat")

    @respx.mock
    @pytest.mark.asyncio
    async def test_forbidden_is_rate_limit(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(
            return_value=Response(403, headers={"x-ratelimit-reset": "1748782800"})
        )
        with pytest.raises(GitHubRateLimitError) as exc_info:
            await service.fetch_profile_monolithic("octocat")
        assert exc_info.value.reset_at == datetime.fromtimestamp(1748782800, UTC)

    @respx.mock
    @pytest.mark.asyncio
    async def test_graphql_rate_limited(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(
            return_value=Response(
                200, json={"errors": [{"type": "RATE_LIMITED", "message": "API rate limit exceeded"}]}
            )
        )
        with pytest.raises(GitHubRateLimitError):
            await service.fetch_profile_monolithic("octocat")

    @respx.mock
    @pytest.mark.asyncio
    async def test_graphql_not_found(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(
            return_value=Response(
                200,
                json={
                    "data": {"user": None},
                    "errors": [{"type": "NOT_FOUND", "message": "Could not resolve to a User"}],
                },
            )
        )
        with pytest.raises(GitHubNotFoundError):
            await service.fetch_profile_monolithic("ghost")

    @respx.mock
    @pytest.mark.asyncio
    async def test_other_graphql_errors(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(
            return_value=Response(200, json={"errors": [{"message": "Field 'x' doesn't exist"}]})
        )
        with pytest.raises(GitHubAPIError):
            await service.fetch_profile_monolithic("octocat")

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing_data(self, service: GitHubService) -> None:
        respx.post(GRAPHQL_URL).mock(return_value=Response(200, json={"data": None}))
        with pytest.raises(GitHubValidationError):
            await service.fetch_profile_monolithic("octocat")

    @respx.mock
    @pytest.mark.asyncio
    async def test_undecodable_body(self, service: GitHubService) -> None:
        """A body that fails content decoding is a validation error, not a crash."""
        route = respx.post(GRAPHQL_URL).mock(
            return_value=Response(200, headers={"Content-Encoding": "gzip"}, content=b"not-gzip")
        )

        with pytest.raises(GitHubValidationError):
            await service.fetch_profile_monolithic("octocat")
        assert route.call_count == 1

    @respx.mock
    @pytest.mark.asyncio
    async def test_redirect_loop_is_transient(self, service: GitHubService) -> None:
        route = respx.post(GRAPHQL_URL).mock(side_effect=httpx.TooManyRedirects("redirect loop"))

        with pytest.raises(GitHubTransientError):
            await service.fetch_profile_monolithic("octocat")
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_missing_token(self) -> None:
        service = GitHubService(token="", graphql_url=GRAPHQL_URL)
        with pytest.raises(GitHubAuthError):
            await service.fetch_profile_monolithic("octocat")


class TestRetries:
    """Tests for the retry policy."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_server_errors_are_retried(self, service: GitHubService) -> None:
        route = respx.post(GRAPHQL_URL).mock(
            side_effect=[Response(502), Response(503), Response(200, json=MONOLITHIC_PAYLOAD)]
        )

        stats = await service.fetch_profile_monolithic("octocat")

        assert route.call_count == 3
        assert stats.username == "octocat"

    @respx.mock
    @pytest.mark.asyncio
    async def test_gives_up_after_three_attempts(self, service: GitHubService) -> None:
        route = respx.post(GRAPHQL_URL).mock(return_value=Response(500))

        with pytest.raises(GitHubTransientError):
            await service.fetch_profile_monolithic("octocat")
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_network_errors_are_retried(self, service: GitHubService) -> None:
        route = respx.post(GRAPHQL_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(GitHubTransientError):
            await service.fetch_profile_monolithic("octocat")
        assert route.call_count == 3

    @respx.mock
    @pytest.mark.asyncio
    async def test_client_errors_are_not_retried(self, service: GitHubService) -> None:
        route = respx.post(GRAPHQL_URL).mock(return_value=Response(401))

        with pytest.raises(GitHubAuthError):
            await service.fetch_profile_monolithic("octocat")
        assert route.call_count == 1


class TestUserExists:
    """Tests for the REST existence check."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_existing_user(self, service: GitHubService) -> None:
        respx.get(f"{REST_URL}/users/octocat").mock(
            return_value=Response(200, json={"login": "octocat"})
        )
        assert await service.user_exists("octocat") is True

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing_user(self, service: GitHubService) -> None:
        respx.get(f"{REST_URL}/users/ghost").mock(return_value=Response(404))
        assert await service.user_exists("ghost") is False

    @respx.mock
    @pytest.mark.asyncio
    async def test_rate_limited(self, service: GitHubService) -> None:
        respx.get(f"{REST_URL}/users/octocat").mock(return_value=Response(403))
        with pytest.raises(GitHubRateLimitError):
            await service.user_exists("octocat")


class TestMonitoring:
    """Tests for timings and error reports emitted by the client."""

    @respx.mock
    @pytest.mark.asyncio
    async def test_each_query_is_timed(
        self, service: GitHubService, metrics: MetricsCollector
    ) -> None:
        respx.post(GRAPHQL_URL).mock(side_effect=graphql_router())

        await service.fetch_profile("octocat")

        timed = {m.labels["query"]: m for m in metrics.get_operation_metrics("github_query")}
        assert set(timed) == {"basic", "contributions", "repositories", "issues_and_prs"}
        assert all(m.count == 1 and m.error_count == 0 for m in timed.values())

    @respx.mock
    @pytest.mark.asyncio
    async def test_rate_limit_recorded_as_metric(
        self, service: GitHubService, metrics: MetricsCollector
    ) -> None:
        respx.post(GRAPHQL_URL).mock(return_value=Response(200, json=MONOLITHIC_PAYLOAD))

        await service.fetch_profile_monolithic("octocat")

        custom = {m["name"]: m for m in metrics.export()["custom"]}
        assert custom["github_rate_limit_remaining"]["value"] == 4999
        assert "github_rate_limit_reset_seconds" in custom

    @respx.mock
    @pytest.mark.asyncio
    async def test_failures_are_tracked(
        self,
        service: GitHubService,
        metrics: MetricsCollector,
        error_tracker: ErrorTracker,
    ) -> None:
        respx.post(GRAPHQL_URL).mock(return_value=Response(401))

        for _ in range(2):
            with pytest.raises(GitHubAuthError):
                await service.fetch_profile_monolithic("octocat")

        [report] = error_tracker.get_top_errors()
        assert report.name == "GitHubAuthError"
        assert report.count == 2
        assert report.context["component"] == "github"
        assert report.context["operation"] == "monolithic"
        assert report.context["username"] == "octocat"
        [timing] = metrics.get_operation_metrics("github_query")
        assert timing.error_count == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_missing_user_not_tracked(
        self, service: GitHubService, error_tracker: ErrorTracker
    ) -> None:
        respx.post(GRAPHQL_URL).mock(return_value=Response(200, json={"data": {"user": None}}))

        with pytest.raises(GitHubNotFoundError):
            await service.fetch_profile_monolithic("ghost")

        assert error_tracker.get_stats()["unique_errors"] == 0

    @respx.mock
    @pytest.mark.asyncio
    async def test_user_exists_failures_tracked(
        self, service: GitHubService, error_tracker: ErrorTracker
    ) -> None:
        respx.get(f"{REST_URL}/users/octocat").mock(return_value=Response(403))

        with pytest.raises(GitHubRateLimitError):
            await service.user_exists("octocat")

        [report] = error_tracker.export()
        assert report.context["operation"] == "user_exists"
