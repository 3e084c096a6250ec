import asyncio
import math
from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from gitivity.api.schemas.github import (
    ContributionStreak,
    LanguageShare,
    ProfileStats,
    RateLimitStatus,
    RepositoryHealth,
)
from gitivity.core.config import settings
from gitivity.core.constants import GITHUB_BACKOFF_MAX, GITHUB_MAX_ATTEMPTS
from gitivity.core.errors import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
    GitHubTransientError,
    GitHubValidationError,
)
from gitivity.monitoring.error_tracker import ErrorTracker
from gitivity.monitoring.error_tracker import error_tracker as default_error_tracker
from gitivity.monitoring.metrics import MetricsCollector
from gitivity.monitoring.metrics import metrics as default_metrics

logger = structlog.get_logger()


USER_PROFILE_QUERY = """
query GetUserProfile($username: String!) {
  user(login: $username) {
    login
    name
    avatarUrl
    bio
    followers { totalCount }
    following { totalCount }
    repositories(first: 100, privacy: PUBLIC, orderBy: {field: STARGAZERS, direction: DESC}) {
      totalCount
      nodes {
        name
        stargazerCount
        forkCount
        primaryLanguage { name }
        isFork
        isPrivate
        issues { totalCount }
        pullRequests { totalCount }
      }
    }
    issues { totalCount }
    pullRequests { totalCount }
    contributionsCollection {
      totalCommitContributions
      totalIssueContributions
      totalPullRequestContributions
      totalPullRequestReviewContributions
    }
    createdAt
    updatedAt
  }
  rateLimit { remaining resetAt }
}
"""

BASIC_USER_QUERY = """
query GetBasicUserData($username: String!) {
  user(login: $username) {
    login
    name
    avatarUrl
    bio
    followers { totalCount }
    following { totalCount }
    createdAt
    updatedAt
  }
}
"""

CONTRIBUTIONS_QUERY = """
query GetContributionsData($username: String!) {
  user(login: $username) {
    contributionsCollection {
      totalCommitContributions
      totalIssueContributions
      totalPullRequestContributions
      totalPullRequestReviewContributions
    }
  }
}
"""

REPOSITORIES_QUERY = """
query GetRepositoriesData($username: String!) {
  user(login: $username) {
    repositories(first: 50, privacy: PUBLIC, orderBy: {field: STARGAZERS, direction: DESC}) {
      totalCount
      nodes {
        name
        stargazerCount
        forkCount
        primaryLanguage { name }
        isFork
        isPrivate
        issues { totalCount }
        pullRequests { totalCount }
      }
    }
  }
}
"""

ISSUES_AND_PRS_QUERY = """
query GetIssuesAndPRsData($username: String!) {
  user(login: $username) {
    issues { totalCount }
    pullRequests { totalCount }
  }
  rateLimit { remaining resetAt }
}
"""

CONTRIBUTION_FIELDS = (
    "totalCommitContributions",
    "totalIssueContributions",
    "totalPullRequestContributions",
    "totalPullRequestReviewContributions",
)

EMPTY_CONTRIBUTIONS = {field: 0 for field in CONTRIBUTION_FIELDS}
EMPTY_REPOSITORIES: dict[str, Any] = {"totalCount": 0, "nodes": []}
EMPTY_ISSUES_AND_PRS: dict[str, Any] = {
    "issues": {"totalCount": 0},
    "pullRequests": {"totalCount": 0},
}

SECONDS_PER_YEAR = 60 * 60 * 24 * 365
TOP_LANGUAGES = 5


class _RetryableStatusError(Exception):
    """Raised inside the retry loop for responses worth another attempt."""

    def __init__(self, response: httpx.Response) -> None:
        super().__init__(f"GitHub responded with {response.status_code}")
        self.response = response


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "GitHub request failed, retrying",
        attempt=retry_state.attempt_number,
        backoff_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(exc),
    )


def _parse_timestamp(value: Any, field: str) -> datetime:
    if not isinstance(value, str):
        raise GitHubValidationError(f"GitHub API returned invalid {field}")
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        raise GitHubValidationError(f"GitHub API returned invalid {field}: {value}") from e


def _require_count(container: Any, field: str) -> int:
    """Read ``container[field].totalCount`` or fail validation."""
    node = container.get(field) if isinstance(container, dict) else None
    count = node.get("totalCount") if isinstance(node, dict) else None
    if not isinstance(count, int) or isinstance(count, bool):
        raise GitHubValidationError(f"GitHub API returned invalid {field}.totalCount")
    return count


def _require_int(container: dict, field: str) -> int:
    value = container.get(field)
    if not isinstance(value, int) or isinstance(value, bool):
        raise GitHubValidationError(f"GitHub API returned invalid {field}")
    return value


def validate_basic_user(user: Any) -> dict:
    if not isinstance(user, dict):
        raise GitHubValidationError("GitHub API returned invalid response format")
    for field in ("login", "avatarUrl", "createdAt", "updatedAt"):
        if not isinstance(user.get(field), str):
            raise GitHubValidationError(f"GitHub API returned invalid {field}")
    _require_count(user, "followers")
    _require_count(user, "following")
    return user


def validate_contributions(collection: Any) -> dict:
    if not isinstance(collection, dict):
        raise GitHubValidationError("GitHub API returned invalid contributionsCollection")
    for field in CONTRIBUTION_FIELDS:
        _require_int(collection, field)
    return collection


def validate_repositories(repositories: Any) -> dict:
    if not isinstance(repositories, dict):
        raise GitHubValidationError("GitHub API returned invalid repositories")
    _require_int(repositories, "totalCount")
    nodes = repositories.get("nodes")
    if not isinstance(nodes, list):
        raise GitHubValidationError("GitHub API returned invalid repositories.nodes")
    for repo in nodes:
        if not isinstance(repo, dict):
            raise GitHubValidationError("GitHub API returned invalid repository node")
        _require_int(repo, "stargazerCount")
        _require_int(repo, "forkCount")
        if not isinstance(repo.get("isFork"), bool):
            raise GitHubValidationError("GitHub API returned invalid isFork")
        _require_count(repo, "issues")
    return repositories


def validate_issues_and_prs(user: Any) -> dict:
    if not isinstance(user, dict):
        raise GitHubValidationError("GitHub API returned invalid response format")
    _require_count(user, "issues")
    _require_count(user, "pullRequests")
    return user


def language_distribution(repos: list[dict]) -> list[LanguageShare]:
    """Share of repositories per primary language, top five.

    Ties keep first-seen order since the sort is stable.
    """
    counts: dict[str, int] = {}
    with_language = 0
    for repo in repos:
        language = repo.get("primaryLanguage")
        if isinstance(language, dict) and language.get("name"):
            counts[language["name"]] = counts.get(language["name"], 0) + 1
            with_language += 1

    shares = [
        LanguageShare(name=name, percentage=math.floor(count / with_language * 100 + 0.5))
        for name, count in counts.items()
    ]
    shares.sort(key=lambda share: share.percentage, reverse=True)
    return shares[:TOP_LANGUAGES]


def build_profile_stats(
    user: dict,
    contributions: dict,
    repositories: dict,
    issues_and_prs: dict,
    now: datetime | None = None,
) -> ProfileStats:
    """Flatten the GraphQL payloads into a ``ProfileStats`` record."""
    now = now or datetime.now(UTC)
    repos = repositories["nodes"]
    original_repos = [repo for repo in repos if not repo["isFork"]]

    total_stars = sum(max(0, repo["stargazerCount"]) for repo in original_repos)
    total_forks = sum(max(0, repo["forkCount"]) for repo in original_repos)

    # Closed issues per repository are not fetched, so health is binary.
    open_issues = sum(repo["issues"]["totalCount"] for repo in original_repos)
    repository_health = RepositoryHealth(
        open_issues=open_issues,
        closed_issues=0,
        ratio=1.0 if open_issues == 0 else 0.0,
    )

    # Estimated from average yearly commits; the contribution calendar is not fetched.
    total_commits = contributions["totalCommitContributions"]
    created_at = _parse_timestamp(user["createdAt"], "createdAt")
    account_age_years = (now - created_at).total_seconds() / SECONDS_PER_YEAR
    avg_commits_per_year = total_commits / max(account_age_years, 1)
    contribution_streak = ContributionStreak(
        current=math.floor(avg_commits_per_year / 10),
        longest=math.floor(avg_commits_per_year / 8),
    )

    return ProfileStats(
        username=user["login"],
        name=user.get("name"),
        avatar_url=user["avatarUrl"],
        bio=user.get("bio"),
        followers=user["followers"]["totalCount"],
        following=user["following"]["totalCount"],
        public_repos=repositories["totalCount"],
        total_stars_received=total_stars,
        total_forks_received=total_forks,
        total_commits=total_commits,
        created_at=created_at,
        updated_at=_parse_timestamp(user["updatedAt"], "updatedAt"),
        languages=language_distribution(repos),
        total_prs_opened=issues_and_prs["pullRequests"]["totalCount"],
        total_prs_merged=contributions["totalPullRequestContributions"],
        total_issues_opened=issues_and_prs["issues"]["totalCount"],
        total_issues_closed=contributions["totalIssueContributions"],
        total_reviews_given=contributions["totalPullRequestReviewContributions"],
        repository_health=repository_health,
        contribution_streak=contribution_streak,
        raw_repo_data=repos,
        raw_contributions_data=contributions,
    )


class GitHubService:
    """Client for the GitHub GraphQL API (plus one REST existence check)."""

    def __init__(
        self,
        token: str | None = None,
        graphql_url: str | None = None,
        api_base_url: str | None = None,
        timeout: float | None = None,
        retry_wait: wait_base | None = None,
        metrics: MetricsCollector | None = None,
        errors: ErrorTracker | None = None,
    ) -> None:
        self.token = settings.github_token if token is None else token
        self.graphql_url = graphql_url or settings.github_graphql_url
        self.api_base_url = api_base_url or settings.github_api_base_url
        self.timeout = timeout or settings.github_request_timeout
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=GITHUB_BACKOFF_MAX)
        self.last_rate_limit: RateLimitStatus | None = None
        self.metrics = metrics or default_metrics
        self.errors = errors or default_error_tracker

    @property
    def headers(self) -> dict[str, str]:
        if not self.token:
            raise GitHubAuthError("GITHUB_TOKEN environment variable is required")
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send one request, retrying 5xx, 429 and network failures.

        Bodies are read inside ``client.request``, so a broken encoding shows
        up here as ``httpx.DecodingError`` and is not retried.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(GITHUB_MAX_ATTEMPTS),
                wait=self.retry_wait,
                retry=retry_if_exception_type((httpx.TransportError, _RetryableStatusError)),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    async with httpx.AsyncClient(timeout=self.timeout) as client:
                        response = await client.request(method, url, **kwargs)
                    if response.status_code >= 500 or response.status_code == 429:
                        raise _RetryableStatusError(response)
                    return response
        except _RetryableStatusError as e:
            return e.response
        except httpx.DecodingError as e:
            raise GitHubValidationError(f"GitHub API returned an undecodable body: {e}") from e
        except httpx.TransportError as e:
            raise GitHubTransientError(f"Network error contacting GitHub: {e}") from e
        except httpx.RequestError as e:
            raise GitHubTransientError(f"Request to GitHub failed: {e}") from e
        raise GitHubTransientError("GitHub request was not attempted")

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if response.is_success:
            return
        if status == 401:
            raise GitHubAuthError(
                "Invalid GitHub token. Please check GITHUB_TOKEN environment variable.",
                status_code=status,
            )
        if status in (403, 429):
            reset_at = None
            reset_header = response.headers.get("x-ratelimit-reset")
            if reset_header and reset_header.isdigit():
                reset_at = datetime.fromtimestamp(int(reset_header), UTC)
            message = "GitHub API rate limit exceeded. " + (
                f"Resets at {reset_at.isoformat()}" if reset_at else "Try again later."
            )
            raise GitHubRateLimitError(message, status_code=status, reset_at=reset_at)
        if status >= 500:
            raise GitHubTransientError(
                "GitHub API is temporarily unavailable. Please try again later.",
                status_code=status,
            )
        raise GitHubAPIError(
            f"GitHub API error: {status} {response.reason_phrase}",
            status_code=status,
        )

    @staticmethod
    def _raise_for_graphql_errors(errors: list[dict]) -> None:
        def matches(error: dict, error_type: str, phrase: str) -> bool:
            message = str(error.get("message", "")).lower()
            return error.get("type") == error_type or phrase in message

        if any(matches(e, "RATE_LIMITED", "rate limit") for e in errors):
            raise GitHubRateLimitError()
        if any(matches(e, "FORBIDDEN", "bad credentials") for e in errors):
            raise GitHubAuthError("GitHub authentication failed. Please check your token.")
        if any(e.get("type") == "NOT_FOUND" for e in errors):
            raise GitHubNotFoundError("User not found")
        first = errors[0] if errors else {}
        raise GitHubAPIError(f"GitHub API error: {first.get('message', 'unknown error')}")

    async def _graphql(self, query: str, variables: dict, operation: str) -> dict:
        """Run one GraphQL query and return its ``data`` object.

        Each call is timed as ``github_query`` and failures other than a
        missing user are reported to the error tracker.
        """
        try:
            with self.metrics.timed("github_query", {"query": operation}):
                return await self._run_graphql(query, variables)
        except GitHubNotFoundError:
            raise
        except GitHubError as e:
            self.errors.track(
                e,
                operation=operation,
                component="github",
                username=variables.get("username"),
                status_code=e.status_code,
            )
            raise

    async def _run_graphql(self, query: str, variables: dict) -> dict:
        response = await self._request(
            "POST",
            self.graphql_url,
            headers=self.headers,
            json={"query": query, "variables": variables},
        )
        self._raise_for_status(response)

        try:
            payload = response.json()
        except ValueError as e:
            raise GitHubValidationError("GitHub API returned invalid response format") from e
        if not isinstance(payload, dict):
            raise GitHubValidationError("GitHub API returned invalid response format")

        errors = payload.get("errors")
        if errors:
            logger.error("GitHub API GraphQL errors", errors=errors)
            self._raise_for_graphql_errors(errors)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise GitHubValidationError("GitHub API returned invalid response format")

        if isinstance(data.get("rateLimit"), dict):
            self._record_rate_limit(data["rateLimit"])
        return data

    def _record_rate_limit(self, rate_limit: dict) -> None:
        remaining = rate_limit.get("remaining")
        reset_at = rate_limit.get("resetAt")
        if not isinstance(remaining, int) or not isinstance(reset_at, str):
            return
        try:
            status = RateLimitStatus(
                remaining=remaining,
                reset_at=reset_at,
                observed_at=datetime.now(UTC),
            )
        except ValueError:
            return
        self.last_rate_limit = status
        self.metrics.record_rate_limit(status.remaining, status.reset_at)
        if remaining < settings.github_rate_limit_buffer:
            logger.warning(
                "GitHub rate limit running low",
                remaining=remaining,
                reset_at=reset_at,
            )
        else:
            logger.debug("GitHub rate limit", remaining=remaining, reset_at=reset_at)

    @staticmethod
    def _user_or_not_found(data: dict, username: str) -> dict:
        user = data.get("user")
        if user is None:
            raise GitHubNotFoundError(f"GitHub user {username} not found")
        return user

    async def fetch_profile_monolithic(self, username: str) -> ProfileStats:
        """Fetch everything in one query."""
        data = await self._graphql(USER_PROFILE_QUERY, {"username": username}, "monolithic")
        user = validate_basic_user(self._user_or_not_found(data, username))
        repositories = validate_repositories(user.get("repositories"))
        contributions = validate_contributions(user.get("contributionsCollection"))
        issues_and_prs = validate_issues_and_prs(user)
        return build_profile_stats(user, contributions, repositories, issues_and_prs)

    async def _fetch_basic(self, username: str) -> dict:
        data = await self._graphql(BASIC_USER_QUERY, {"username": username}, "basic")
        return validate_basic_user(self._user_or_not_found(data, username))

    async def _fetch_contributions(self, username: str) -> dict:
        data = await self._graphql(CONTRIBUTIONS_QUERY, {"username": username}, "contributions")
        user = self._user_or_not_found(data, username)
        return validate_contributions(user.get("contributionsCollection"))

    async def _fetch_repositories(self, username: str) -> dict:
        data = await self._graphql(REPOSITORIES_QUERY, {"username": username}, "repositories")
        user = self._user_or_not_found(data, username)
        return validate_repositories(user.get("repositories"))

    async def _fetch_issues_and_prs(self, username: str) -> dict:
        data = await self._graphql(ISSUES_AND_PRS_QUERY, {"username": username}, "issues_and_prs")
        return validate_issues_and_prs(self._user_or_not_found(data, username))

    async def fetch_profile(self, username: str) -> ProfileStats:
        """Fetch a profile with four concurrent sub-queries.

        Only the basic profile query is required; any other failed part is
        replaced by zero-valued defaults.
        """
        basic, contributions, repositories, issues_and_prs = await asyncio.gather(
            self._fetch_basic(username),
            self._fetch_contributions(username),
            self._fetch_repositories(username),
            self._fetch_issues_and_prs(username),
            return_exceptions=True,
        )

        if isinstance(basic, BaseException):
            raise basic

        failures = {}
        if isinstance(contributions, BaseException):
            failures["contributions"] = str(contributions)
            contributions = dict(EMPTY_CONTRIBUTIONS)
        if isinstance(repositories, BaseException):
            failures["repositories"] = str(repositories)
            repositories = dict(EMPTY_REPOSITORIES)
        if isinstance(issues_and_prs, BaseException):
            failures["issues_and_prs"] = str(issues_and_prs)
            issues_and_prs = dict(EMPTY_ISSUES_AND_PRS)

        if failures:
            logger.warning("Partial GitHub fetch failures", username=username, **failures)

        return build_profile_stats(basic, contributions, repositories, issues_and_prs)

    async def user_exists(self, username: str) -> bool:
        """Cheap REST check used before running a full analysis."""
        headers = {"User-Agent": "Gitivity-App"}
        if self.token:
            headers["Authorization"] = f"token {self.token}"
        try:
            with self.metrics.timed("github_query", {"query": "user_exists"}):
                response = await self._request(
                    "GET",
                    f"{self.api_base_url}/users/{username}",
                    headers=headers,
                )
                if response.status_code == 404:
                    return False
                self._raise_for_status(response)
                return True
        except GitHubError as e:
            self.errors.track(
                e,
                operation="user_exists",
                component="github",
                username=username,
                status_code=e.status_code,
            )
            raise
