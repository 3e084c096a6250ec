from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, status

from gitivity.api.dependencies import get_runtime
from gitivity.api.schemas.cache import (
    CacheCleanupResponse,
    CacheClearResponse,
    CacheInvalidateRequest,
    CacheInvalidateResponse,
)
from gitivity.services.runtime import GitivityRuntime

logger = structlog.get_logger()

router = APIRouter()


@router.get("", summary="Cache statistics")
async def get_cache_stats(
    runtime: GitivityRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    return {"caches": runtime.cache.get_stats(), "in_flight": runtime.coalescer.in_flight}


@router.post(
    "/clear",
    response_model=CacheClearResponse,
    summary="Clear one or all cache tiers",
)
async def clear_cache(
    cache_type: str = Query("leaderboard", alias="type"),
    runtime: GitivityRuntime = Depends(get_runtime),
) -> CacheClearResponse:
    if cache_type not in ("leaderboard", "all"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid cache type. Use \"leaderboard\" or \"all\"",
        )

    previous_stats = runtime.cache.get_stats()

    if cache_type == "leaderboard":
        runtime.cache.clear_leaderboard()
        message = "Leaderboard cache cleared"
    else:
        runtime.cache.clear_all()
        message = "All caches cleared"

    logger.info("Cache cleared", type=cache_type)
    return CacheClearResponse(
        message=message,
        previous_stats=previous_stats,
        new_stats=runtime.cache.get_stats(),
    )


@router.post(
    "/invalidate",
    response_model=CacheInvalidateResponse,
    summary="Invalidate cached entries",
)
async def invalidate_cache(
    request: CacheInvalidateRequest,
    runtime: GitivityRuntime = Depends(get_runtime),
) -> CacheInvalidateResponse:
    """Drop cached data for one user, the leaderboard, or everything."""
    cache = runtime.cache
    before = sum(len(tier) for tier in cache.tiers.values())

    if request.type == "user":
        if not request.username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Username is required for user invalidation",
            )
        cache.invalidate_user(request.username)
    elif request.type == "leaderboard":
        cache.clear_leaderboard()
    else:
        cache.clear_all()

    invalidated = before - sum(len(tier) for tier in cache.tiers.values())
    logger.info(
        "Cache invalidated",
        type=request.type,
        username=request.username,
        entries=invalidated,
    )
    return CacheInvalidateResponse(
        message=f"Invalidated {invalidated} cache entries",
        type=request.type,
        username=request.username,
    )


@router.get("/export", summary="Dump cache contents")
async def export_cache(
    runtime: GitivityRuntime = Depends(get_runtime),
) -> dict[str, Any]:
    return runtime.cache.export()


@router.post(
    "/cleanup",
    response_model=CacheCleanupResponse,
    summary="Sweep expired cache entries",
)
async def cleanup_cache(
    runtime: GitivityRuntime = Depends(get_runtime),
) -> CacheCleanupResponse:
    cleaned = runtime.cache.cleanup()
    return CacheCleanupResponse(cleaned=cleaned, stats=runtime.cache.get_stats())
