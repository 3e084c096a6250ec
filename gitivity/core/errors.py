from datetime import datetime


class GitivityError(Exception):
    """Base class for errors raised by the analysis core."""


class GitHubError(GitivityError):
    """Base class for failures talking to the GitHub API."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class GitHubNotFoundError(GitHubError):
    """The requested user does not exist. Terminal, never retried."""


class GitHubRateLimitError(GitHubError):
    """GitHub refused the request because the rate limit is exhausted."""

    def __init__(
        self,
        message: str = "GitHub API rate limit exceeded. Please try again later.",
        status_code: int | None = None,
        reset_at: datetime | None = None,
    ) -> None:
        super().__init__(message, status_code)
        self.reset_at = reset_at


class GitHubAuthError(GitHubError):
    """The configured token is missing or was rejected."""


class GitHubTransientError(GitHubError):
    """Network failure or 5xx that survived the internal retries."""


class GitHubValidationError(GitHubError):
    """GitHub answered with a payload that does not match the expected shape."""


class GitHubAPIError(GitHubError):
    """Any other GraphQL or HTTP error reported by GitHub."""


class DatabaseError(GitivityError):
    """The profile store failed to complete a write."""
