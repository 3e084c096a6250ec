from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class LanguageShare(BaseModel):
    name: str
    percentage: int


class RepositoryHealth(BaseModel):
    open_issues: int = 0
    closed_issues: int = 0
    ratio: float = 0.0


class ContributionStreak(BaseModel):
    current: int = 0
    longest: int = 0


class ProfileStats(BaseModel):
    """Normalized GitHub statistics for one user."""

    username: str
    name: str | None = None
    avatar_url: str
    bio: str | None = None
    followers: int = 0
    following: int = 0
    public_repos: int = 0
    total_stars_received: int = Field(0, ge=0)
    total_forks_received: int = Field(0, ge=0)
    total_commits: int = 0
    created_at: datetime
    updated_at: datetime
    languages: list[LanguageShare] = Field(default_factory=list)
    total_prs_opened: int = 0
    total_prs_merged: int = 0
    total_issues_opened: int = 0
    total_issues_closed: int = 0
    total_reviews_given: int = 0
    repository_health: RepositoryHealth = Field(default_factory=RepositoryHealth)
    contribution_streak: ContributionStreak = Field(default_factory=ContributionStreak)

    # Kept for debugging only
    raw_repo_data: list[dict[str, Any]] | None = None
    raw_contributions_data: dict[str, Any] | None = None


class RateLimitStatus(BaseModel):
    remaining: int
    reset_at: datetime
    observed_at: datetime
