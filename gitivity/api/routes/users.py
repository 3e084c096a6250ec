from email.utils import format_datetime
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from gitivity.api.dependencies import get_runtime
from gitivity.api.errors import to_http_exception
from gitivity.api.schemas.profile import (
    GitivityProfileResponse,
    ProfileMetadata,
    RefreshedProfile,
    RefreshResponse,
)
from gitivity.core.errors import GitivityError
from gitivity.services.profile_store import ensure_utc
from gitivity.services.runtime import GitivityRuntime

logger = structlog.get_logger()

router = APIRouter()

CACHE_CONTROL_DEFAULT = "public, max-age=1800, s-maxage=1800, stale-while-revalidate=3600"
CACHE_CONTROL_REFRESHED = "public, max-age=300, s-maxage=300, stale-while-revalidate=600"
CACHE_CONTROL_NOT_FOUND = "public, max-age=60, s-maxage=60"


@router.get(
    "/{username}",
    response_model=GitivityProfileResponse,
    summary="Analyze a GitHub user",
)
async def get_user_profile(
    username: str,
    response: Response,
    refresh: bool = Query(False, description="Bypass cached results"),
    runtime: GitivityRuntime = Depends(get_runtime),
) -> GitivityProfileResponse:
    """Get a user's Gitivity profile, analyzing it first when needed."""
    try:
        profile = await runtime.analyze_user(username, force_refresh=refresh)
    except GitivityError as e:
        raise to_http_exception(e, username) from e

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
            headers={"Cache-Control": CACHE_CONTROL_NOT_FOUND},
        )

    updated_at = ensure_utc(profile.updated_at)
    response.headers["Cache-Control"] = CACHE_CONTROL_REFRESHED if refresh else CACHE_CONTROL_DEFAULT
    response.headers["ETag"] = f'"{username}-{profile.score}-{int(updated_at.timestamp() * 1000)}"'
    response.headers["Last-Modified"] = format_datetime(updated_at, usegmt=True)
    response.headers["Vary"] = "Accept-Encoding"
    return profile


@router.post(
    "/{username}/refresh",
    response_model=RefreshResponse,
    summary="Force re-analysis of a user",
)
async def refresh_user_profile(
    username: str,
    runtime: GitivityRuntime = Depends(get_runtime),
) -> RefreshResponse:
    """Re-fetch GitHub data and re-score regardless of cached results."""
    try:
        profile = await runtime.analyze_user(username, force_refresh=True)
    except GitivityError as e:
        raise to_http_exception(e, username) from e

    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Failed to analyze user or user not found",
        )

    return RefreshResponse(
        profile=RefreshedProfile(
            username=profile.username,
            score=profile.score,
            updated_at=profile.updated_at,
            rank=profile.rank,
            total_users=profile.total_users,
        )
    )


@router.get(
    "/{username}/metadata",
    response_model=ProfileMetadata,
    summary="Page metadata for a user profile",
)
async def get_user_metadata(
    username: str,
    runtime: GitivityRuntime = Depends(get_runtime),
) -> ProfileMetadata:
    """Title, description and share image; never fails."""
    try:
        profile = await runtime.analyze_user(username)
    except Exception as e:
        logger.warning(
            "Metadata lookup failed",
            username=username,
            error=str(e),
            error_type=type(e).__name__,
        )
        return ProfileMetadata(
            title=f"{username} - Gitivity Profile",
            description=f"Analyzing {username}'s GitHub profile...",
        )

    if profile is None:
        return ProfileMetadata(
            title=f"{username} - User Not Found - Gitivity",
            description=f'GitHub user "{username}" could not be found.',
        )

    og_image = (
        f"/api/og?username={profile.username}&score={profile.score}"
        f"&avatar={quote(profile.avatar_url or '', safe='')}"
    )
    return ProfileMetadata(
        title=f"{profile.username} - Gitivity Score: {profile.score}%",
        description=(
            f"Check out {profile.username}'s GitHub activity analysis "
            f"and Gitivity Score of {profile.score}%"
        ),
        og_image=og_image,
        score=profile.score,
    )
