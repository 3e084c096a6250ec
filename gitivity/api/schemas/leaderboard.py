from datetime import datetime

from pydantic import BaseModel


class LeaderboardEntry(BaseModel):
    rank: int
    username: str
    score: int
    avatar_url: str | None
    public_repos: int
    total_stars_received: int
    followers: int
    updated_at: datetime


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntry]
    total_users: int
