"""Bounded TTL cache of resolved repository permissions.

Entries are keyed by ``(subject_id, owner, resource)``. Expired entries are
dropped on read and by the periodic sweep. When a new key arrives at capacity
the entry with the smallest ``cached_at`` is evicted: this is oldest-insertion
eviction, not LRU, since reads never touch ``cached_at``.
"""
import asyncio
import time
from typing import Callable, Optional

from navconfig.logging import logging

from ..conf import PERMISSION_CACHE_MAX_SIZE, PERMISSION_CACHE_TTL
from .permission import CachedPermission, PermissionLevel


CacheKey = tuple[int, str, str]


class PermissionCache:
    """Concurrency-safe permission cache.

    Example:
        >>> cache = PermissionCache(ttl=300)
        >>> await cache.set(42, "alice", "acme", "widgets", PermissionLevel.WRITE)
        >>> (await cache.get(42, "acme", "widgets")).role
        'Collaborator'
    """

    def __init__(
        self,
        ttl: int = PERMISSION_CACHE_TTL,
        max_size: int = PERMISSION_CACHE_MAX_SIZE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the cache.

        Args:
            ttl: Default freshness window for entries, in seconds.
            max_size: Maximum number of entries kept.
            clock: Returns the current time as epoch seconds.
        """
        if max_size < 1:
            raise ValueError("max_size must be a positive integer")
        self.ttl = ttl
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[CacheKey, CachedPermission] = {}
        self._lock = asyncio.Lock()
        self.logger = logging.getLogger("warden.auth.cache")

    @staticmethod
    def _key(subject_id: int, owner: str, resource: str) -> CacheKey:
        return (subject_id, owner, resource)

    async def get(
        self,
        subject_id: int,
        owner: str,
        resource: str
    ) -> Optional[CachedPermission]:
        """Return the fresh entry for the pair, or None on miss or expiry."""
        key = self._key(subject_id, owner, resource)
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired(self._clock()):
                del self._entries[key]
                self.logger.debug(f"Cache expired for {subject_id}:{owner}/{resource}")
                return None
            return entry

    async def set(
        self,
        subject_id: int,
        subject_name: str,
        owner: str,
        resource: str,
        level: PermissionLevel,
        ttl: Optional[float] = None,
    ) -> CachedPermission:
        """Insert or replace the entry for the pair and return it."""
        level = PermissionLevel.parse(level)
        key = self._key(subject_id, owner, resource)
        async with self._lock:
            entry = CachedPermission(
                subject_id=subject_id,
                subject_name=subject_name,
                owner=owner,
                resource=resource,
                level=level,
                role=level.role,
                cached_at=self._clock(),
                ttl=self.ttl if ttl is None else ttl,
            )
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict_oldest()
            # re-insert so dict order follows cached_at
            self._entries.pop(key, None)
            self._entries[key] = entry
        self.logger.debug(
            f"Cached permission for {subject_id}:{owner}/{resource}: {level.value}"
        )
        return entry

    async def invalidate(self, subject_id: int, owner: str, resource: str) -> bool:
        """Drop the entry for the pair if present. Idempotent."""
        async with self._lock:
            removed = self._entries.pop(
                self._key(subject_id, owner, resource), None
            ) is not None
        self.logger.debug(f"Invalidated cache for {subject_id}:{owner}/{resource}")
        return removed

    async def invalidate_all(self, subject_id: int) -> int:
        """Drop every entry belonging to ``subject_id``; returns the count."""
        async with self._lock:
            keys = [key for key in self._entries if key[0] == subject_id]
            for key in keys:
                del self._entries[key]
        self.logger.debug(
            f"Invalidated {len(keys)} cache entries for user {subject_id}"
        )
        return len(keys)

    async def clear(self) -> int:
        async with self._lock:
            size = len(self._entries)
            self._entries.clear()
        self.logger.info(f"Cleared all permission cache ({size} entries)")
        return size

    async def sweep_expired(self) -> int:
        """Remove every stale entry; returns how many were removed."""
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._entries.items()
                if entry.is_expired(now)
            ]
            for key in expired:
                del self._entries[key]
        if expired:
            self.logger.debug(
                f"Cleaned {len(expired)} expired permission cache entries"
            )
        return len(expired)

    def stats(self) -> dict[str, float]:
        size = len(self._entries)
        return {
            "size": size,
            "capacity": self.max_size,
            "utilization_percent": (size / self.max_size) * 100,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._entries

    def _evict_oldest(self) -> None:
        # Caller holds the lock.
        oldest_key = min(
            self._entries,
            key=lambda k: self._entries[k].cached_at
        )
        del self._entries[oldest_key]
        self.logger.debug(f"Evicted oldest cache entry: {oldest_key}")
