from gitivity.services.coalescer import RequestCoalescer
from gitivity.services.github_service import GitHubService
from gitivity.services.leaderboard_service import LeaderboardService
from gitivity.services.profile_service import ProfileService
from gitivity.services.profile_store import ProfileStore
from gitivity.services.rank_service import RankService
from gitivity.services.runtime import GitivityRuntime

__all__ = [
    "GitHubService",
    "GitivityRuntime",
    "LeaderboardService",
    "ProfileService",
    "ProfileStore",
    "RankService",
    "RequestCoalescer",
]
