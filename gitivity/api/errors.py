import structlog
from fastapi import HTTPException, status

from gitivity.core.errors import (
    GitHubAuthError,
    GitHubRateLimitError,
    GitHubTransientError,
    GitivityError,
)

logger = structlog.get_logger()


def to_http_exception(error: GitivityError, username: str) -> HTTPException:
    """Translate a core failure into the response the client should see."""
    if isinstance(error, GitHubRateLimitError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="GitHub API rate limit exceeded. Please try again later.",
        )
    if isinstance(error, GitHubAuthError):
        logger.error("GitHub authentication failed", username=username, error=str(error))
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GitHub authentication failed. Please check configuration.",
        )
    if isinstance(error, GitHubTransientError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="GitHub API is temporarily unavailable. Please try again later.",
        )
    logger.error("Error analyzing user", username=username, error=str(error))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal server error. Please try again later.",
    )
