# -*- coding: utf-8 -*-
"""
Emission Factor Cache

LRU cache with TTL for resolved emission factors, keyed by the composite
lookup tuple ``(category, subcategory, scope, region)``.

Features:
- LRU eviction when max_size is reached
- TTL-based expiration
- Thread-safe operations
- Hit/miss statistics
"""

from collections import OrderedDict
from datetime import datetime
from threading import RLock
from typing import Any, Dict, Optional, Tuple

FactorKey = Tuple[str, str, int, str]


class CacheEntry:
    """A single cache entry with TTL tracking."""

    def __init__(self, value: Any, ttl_seconds: int = 3600):
        self.value = value
        self.created_at = datetime.now()
        self.ttl_seconds = ttl_seconds
        self.access_count = 0

    def is_expired(self) -> bool:
        """Check if cache entry has expired."""
        age = (datetime.now() - self.created_at).total_seconds()
        return age > self.ttl_seconds

    def access(self) -> Any:
        self.access_count += 1
        return self.value


class FactorCache:
    """
    LRU cache with TTL for emission factor lookups.

    Category and subcategory are kept as given, since store lookups are
    case-sensitive; region is uppercased.
    """

    def __init__(self, max_size: int = 1000, ttl_seconds: int = 3600):
        """
        Initialize factor cache.

        Args:
            max_size: Maximum number of entries (default: 1000)
            ttl_seconds: Time to live in seconds (default: 1 hour)
        """
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds

        # LRU storage (OrderedDict maintains insertion order)
        self._cache: "OrderedDict[FactorKey, CacheEntry]" = OrderedDict()
        self._lock = RLock()

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @staticmethod
    def make_key(category: str, subcategory: str, scope: int, region: str) -> FactorKey:
        """Build the composite key; category and subcategory match the stores exactly."""
        return (category, subcategory, int(scope), region.strip().upper())

    def get(self, category: str, subcategory: str, scope: int, region: str) -> Optional[Any]:
        """
        Get a factor from the cache.

        Returns:
            Cached EmissionFactor or None if not found/expired
        """
        key = self.make_key(category, subcategory, scope, region)

        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._misses += 1
                return None

            if entry.is_expired():
                del self._cache[key]
                self._expirations += 1
                self._misses += 1
                return None

            # LRU: most recently used goes last
            self._cache.move_to_end(key)
            self._hits += 1
            return entry.access()

    def put(
        self,
        category: str,
        subcategory: str,
        scope: int,
        region: str,
        value: Any,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        """Store a factor under its composite key."""
        key = self.make_key(category, subcategory, scope, region)
        ttl = ttl_seconds if ttl_seconds is not None else self.ttl_seconds

        with self._lock:
            if key not in self._cache and self._cache and len(self._cache) >= self.max_size:
                self._cache.popitem(last=False)
                self._evictions += 1

            self._cache[key] = CacheEntry(value, ttl)
            self._cache.move_to_end(key)

    def invalidate(
        self,
        category: Optional[str] = None,
        region: Optional[str] = None,
    ) -> int:
        """
        Invalidate entries matching criteria; all entries when none given.

        Returns:
            Number of entries invalidated
        """
        with self._lock:
            if category is None and region is None:
                count = len(self._cache)
                self._cache.clear()
                return count

            keys_to_remove = [
                key for key in self._cache
                if (category is None or key[0] == category)
                and (region is None or key[3] == region.upper())
            ]
            for key in keys_to_remove:
                del self._cache[key]
            return len(keys_to_remove)

    def clear(self) -> None:
        """Clear all entries and reset statistics."""
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0
            self._expirations = 0

    def get_stats(self) -> Dict[str, Any]:
        """
        Get cache statistics.

        Returns:
            Dict with hits, misses, hit_rate_pct, size, etc.
        """
        with self._lock:
            total_requests = self._hits + self._misses
            hit_rate = (self._hits / total_requests * 100) if total_requests > 0 else 0.0
            return {
                "hits": self._hits,
                "misses": self._misses,
                "total_requests": total_requests,
                "hit_rate_pct": hit_rate,
                "size": len(self._cache),
                "max_size": self.max_size,
                "evictions": self._evictions,
                "expirations": self._expirations,
            }

    def __len__(self) -> int:
        return len(self._cache)


__all__ = ["CacheEntry", "FactorCache", "FactorKey"]
