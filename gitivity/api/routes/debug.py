import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from gitivity.api.dependencies import get_runtime
from gitivity.api.schemas.debug import DebugResponse
from gitivity.api.schemas.github import RateLimitStatus
from gitivity.api.schemas.profile import ProfileCheckResponse
from gitivity.core.config import settings
from gitivity.core.constants import ERROR_RETENTION_HOURS
from gitivity.services.runtime import GitivityRuntime

logger = structlog.get_logger()

router = APIRouter()

METRICS_ACTIONS = ("health", "operations", "slow", "errors", "export", "reset")
ERRORS_ACTIONS = ("stats", "top", "recent", "export", "cleanup")


def _invalid_action(valid: tuple[str, ...]) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=f"Invalid action. Use one of: {', '.join(valid)}",
    )


@router.get(
    "/rate-limit",
    response_model=RateLimitStatus,
    summary="Last observed GitHub rate limit",
)
async def get_rate_limit(
    runtime: GitivityRuntime = Depends(get_runtime),
) -> RateLimitStatus:
    if runtime.github.last_rate_limit is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No GitHub request has reported a rate limit yet",
        )
    return runtime.github.last_rate_limit


@router.get(
    "/profiles/{username}",
    response_model=ProfileCheckResponse,
    summary="Look up a stored profile",
)
async def check_profile(
    username: str,
    runtime: GitivityRuntime = Depends(get_runtime),
) -> ProfileCheckResponse:
    """Read the database row directly, ignoring every cache."""
    summary = await runtime.leaderboard.check_user(username)
    return ProfileCheckResponse(found=summary is not None, data=summary)


@router.get(
    "/metrics",
    response_model=DebugResponse,
    response_model_exclude_none=True,
    summary="Operation timings and system health",
)
async def get_metrics(
    action: str = Query("health"),
    operation: str | None = Query(None, description="Filter operations by name"),
    limit: int = Query(10, ge=1, le=100),
    runtime: GitivityRuntime = Depends(get_runtime),
) -> DebugResponse:
    """Inspect collected metrics.

    ``reset`` is only honoured in development.
    """
    metrics = runtime.metrics

    if action == "health":
        return DebugResponse(data=metrics.get_system_health())
    if action == "operations":
        return DebugResponse(data=[m.to_dict() for m in metrics.get_operation_metrics(operation)])
    if action == "slow":
        return DebugResponse(data=[m.to_dict() for m in metrics.get_slowest_operations(limit)])
    if action == "errors":
        return DebugResponse(data=[m.to_dict() for m in metrics.get_high_error_operations(limit)])
    if action == "export":
        return DebugResponse(data=metrics.export())
    if action == "reset":
        if settings.environment != "development":
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Metrics reset is only available in development",
            )
        metrics.reset()
        return DebugResponse(message="Metrics reset")
    raise _invalid_action(METRICS_ACTIONS)


@router.get(
    "/errors",
    response_model=DebugResponse,
    response_model_exclude_none=True,
    summary="Tracked errors",
)
async def get_errors(
    action: str = Query("stats"),
    limit: int = Query(10, ge=1, le=100),
    hours: float | None = Query(None, gt=0),
    runtime: GitivityRuntime = Depends(get_runtime),
) -> DebugResponse:
    errors = runtime.errors

    if action == "stats":
        return DebugResponse(data=errors.get_stats())
    if action == "top":
        return DebugResponse(data=[r.to_dict() for r in errors.get_top_errors(limit)])
    if action == "recent":
        return DebugResponse(data=[r.to_dict() for r in errors.get_recent_errors(hours or 1)])
    if action == "export":
        return DebugResponse(data=[r.to_dict() for r in errors.export()])
    if action == "cleanup":
        hours = hours or ERROR_RETENTION_HOURS
        removed = errors.cleanup(hours)
        logger.info("Error reports cleaned up via debug route", removed=removed, hours=hours)
        return DebugResponse(message=f"Removed {removed} error reports older than {hours} hours")
    raise _invalid_action(ERRORS_ACTIONS)
