from typing import Literal

from pydantic import BaseModel


class CacheClearResponse(BaseModel):
    message: str
    previous_stats: dict
    new_stats: dict


class CacheInvalidateRequest(BaseModel):
    type: Literal["user", "leaderboard", "all"]
    username: str | None = None


class CacheInvalidateResponse(BaseModel):
    success: bool = True
    message: str
    type: str
    username: str | None = None


class CacheCleanupResponse(BaseModel):
    cleaned: dict[str, int]
    stats: dict
