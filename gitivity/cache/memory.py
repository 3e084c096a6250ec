import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheEntry:
    value: Any
    expires: float  # Absolute epoch milliseconds
    last_accessed: float


@dataclass
class CacheCounters:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0


class MemoryCache:
    """In-process cache with per-entry TTL and least-recently-used eviction.

    Expired entries are dropped lazily when read; ``cleanup`` sweeps the
    rest. When the cache is full, inserting a new key evicts the entry with
    the oldest ``last_accessed`` (ties go to the oldest insertion).
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl_seconds: float = 300,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size = max_size
        self.default_ttl = default_ttl_seconds * 1000
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._counters = CacheCounters()

    def _now(self) -> float:
        return self._clock() * 1000

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            self._counters.misses += 1
            return None

        now = self._now()
        if now > entry.expires:
            del self._entries[key]
            self._counters.misses += 1
            return None

        entry.last_accessed = now
        self._counters.hits += 1
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        now = self._now()
        ttl = ttl_seconds * 1000 if ttl_seconds else self.default_ttl

        if len(self._entries) >= self.max_size and key not in self._entries:
            self._evict_lru()

        self._entries[key] = CacheEntry(value=value, expires=now + ttl, last_accessed=now)
        self._counters.sets += 1

    def delete(self, key: str) -> bool:
        if self._entries.pop(key, None) is None:
            return False
        self._counters.deletes += 1
        return True

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if self._now() > entry.expires:
            del self._entries[key]
            return False
        return True

    def keys(self) -> list[str]:
        return list(self._entries)

    def clear(self) -> None:
        """Drop every entry and reset the counters."""
        self._entries.clear()
        self._counters = CacheCounters()

    def cleanup(self) -> int:
        """Remove every expired entry and return how many were removed."""
        now = self._now()
        expired = [key for key, entry in self._entries.items() if now > entry.expires]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def get_stats(self) -> dict[str, Any]:
        counters = self._counters
        total = counters.hits + counters.misses
        hit_rate = counters.hits / total if total > 0 else 0.0
        return {
            "hits": counters.hits,
            "misses": counters.misses,
            "sets": counters.sets,
            "deletes": counters.deletes,
            "evictions": counters.evictions,
            "size": len(self._entries),
            "hit_rate": round(hit_rate, 2),
        }

    def export(self) -> list[dict[str, Any]]:
        """Describe live entries without touching their access times."""
        now = self._now()
        return [
            {
                "key": key,
                "ttl_remaining_seconds": round((entry.expires - now) / 1000, 1),
                "idle_seconds": round((now - entry.last_accessed) / 1000, 1),
            }
            for key, entry in self._entries.items()
            if now <= entry.expires
        ]

    def _evict_lru(self) -> None:
        if not self._entries:
            return
        oldest_key = min(self._entries, key=lambda k: self._entries[k].last_accessed)
        del self._entries[oldest_key]
        self._counters.evictions += 1

    def __len__(self) -> int:
        return len(self._entries)
