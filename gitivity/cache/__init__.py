from gitivity.cache.client import CacheClient, CacheKeys
from gitivity.cache.memory import MemoryCache

__all__ = ["CacheClient", "CacheKeys", "MemoryCache"]
