"""Fixed tuning values for caching, freshness and persistence."""

# Tier capacities and default TTLs (seconds)
GLOBAL_CACHE_SIZE = 1000
GLOBAL_CACHE_TTL = 300
PROFILE_CACHE_SIZE = 500
PROFILE_CACHE_TTL = 1800
LEADERBOARD_CACHE_SIZE = 10
LEADERBOARD_CACHE_TTL = 300

# Per-entry TTLs (seconds)
GITHUB_DATA_TTL = 600
RANK_TTL = 300
RANK_FALLBACK_TTL = 60
TOTAL_USERS_TTL = 300

# A persisted profile younger than this is served without hitting GitHub
PROFILE_FRESHNESS_HOURS = 24

# Upsert transaction budget (seconds)
DB_TRANSACTION_TIMEOUT = 10.0

# GitHub retry policy
GITHUB_MAX_ATTEMPTS = 3
GITHUB_BACKOFF_MAX = 10

DEFAULT_LEADERBOARD_LIMIT = 50

# Monitoring
SLOW_OPERATION_MS = 5000
METRIC_TIMINGS_HISTORY = 100
CUSTOM_METRIC_RETENTION_SECONDS = 3600
ERROR_RETENTION_HOURS = 24
ERROR_CLEANUP_INTERVAL = 3600
