from fastapi import APIRouter, Depends, Query

from gitivity.api.dependencies import get_runtime
from gitivity.api.schemas.leaderboard import LeaderboardResponse
from gitivity.core.constants import DEFAULT_LEADERBOARD_LIMIT
from gitivity.services.runtime import GitivityRuntime

router = APIRouter()


@router.get(
    "",
    response_model=LeaderboardResponse,
    summary="Get global leaderboard",
)
async def get_leaderboard(
    limit: int = Query(DEFAULT_LEADERBOARD_LIMIT, ge=1, le=100),
    runtime: GitivityRuntime = Depends(get_runtime),
) -> LeaderboardResponse:
    """Top analyzed profiles by Gitivity score."""
    entries, total_users = await runtime.leaderboard.get_leaderboard(limit)
    return LeaderboardResponse(entries=entries, total_users=total_users)
