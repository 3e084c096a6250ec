from gitivity.api.schemas.cache import (
    CacheCleanupResponse,
    CacheClearResponse,
    CacheInvalidateRequest,
    CacheInvalidateResponse,
)
from gitivity.api.schemas.debug import DebugResponse
from gitivity.api.schemas.github import (
    ContributionStreak,
    LanguageShare,
    ProfileStats,
    RateLimitStatus,
    RepositoryHealth,
)
from gitivity.api.schemas.leaderboard import LeaderboardEntry, LeaderboardResponse
from gitivity.api.schemas.profile import (
    GitivityProfileResponse,
    GitivityStats,
    ProfileCheckResponse,
    ProfileMetadata,
    ProfileSummary,
    RankInfo,
    RefreshedProfile,
    RefreshResponse,
    UserExistsResponse,
)
from gitivity.api.schemas.scoring import Achievement, Multiplier, ScoreBreakdown

__all__ = [
    "CacheClearResponse",
    "CacheCleanupResponse",
    "CacheInvalidateRequest",
    "CacheInvalidateResponse",
    "DebugResponse",
    "ProfileStats",
    "LanguageShare",
    "RepositoryHealth",
    "ContributionStreak",
    "RateLimitStatus",
    "LeaderboardEntry",
    "LeaderboardResponse",
    "GitivityProfileResponse",
    "GitivityStats",
    "ProfileCheckResponse",
    "ProfileMetadata",
    "ProfileSummary",
    "RankInfo",
    "RefreshedProfile",
    "RefreshResponse",
    "UserExistsResponse",
    "Achievement",
    "Multiplier",
    "ScoreBreakdown",
]
