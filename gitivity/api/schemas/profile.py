from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from gitivity.api.schemas.github import (
    ContributionStreak,
    LanguageShare,
    RepositoryHealth,
)
from gitivity.api.schemas.scoring import ScoreBreakdown


class GitivityStats(BaseModel):
    """The stats blob persisted alongside each profile."""

    score_version: int
    followers: int
    following: int
    public_repos: int
    total_stars_received: int
    total_forks_received: int
    total_commits: int
    languages: list[LanguageShare]
    bio: str | None
    name: str | None
    created_at: datetime
    last_updated: datetime

    total_prs_opened: int
    total_prs_merged: int
    total_issues_opened: int
    total_issues_closed: int
    total_reviews_given: int
    repository_health: RepositoryHealth
    contribution_streak: ContributionStreak

    score_breakdown: ScoreBreakdown
    finisher_ratio: float

    raw_repo_data: list[dict[str, Any]] | None = None
    raw_contributions_data: dict[str, Any] | None = None


class RankInfo(BaseModel):
    rank: int
    total_users: int


class GitivityProfileResponse(BaseModel):
    id: str
    username: str
    score: int
    score_version: int
    stats: GitivityStats
    avatar_url: str | None
    created_at: datetime
    updated_at: datetime

    # Computed on read, never persisted
    rank: int | None = None
    total_users: int | None = None

    model_config = {"from_attributes": True}

    def with_rank(self, rank_info: RankInfo) -> "GitivityProfileResponse":
        return self.model_copy(
            update={"rank": rank_info.rank, "total_users": rank_info.total_users}
        )


class RefreshedProfile(BaseModel):
    username: str
    score: int
    updated_at: datetime
    rank: int | None
    total_users: int | None


class RefreshResponse(BaseModel):
    success: bool = True
    profile: RefreshedProfile


class ProfileMetadata(BaseModel):
    title: str
    description: str
    og_image: str | None = None
    score: int | None = None


class UserExistsResponse(BaseModel):
    exists: bool


class ProfileSummary(BaseModel):
    username: str
    score: int
    score_version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ProfileCheckResponse(BaseModel):
    found: bool
    data: ProfileSummary | None = Field(default=None)
