"""Definition cache implementations.

Entries live in named groups so a whole group can be flushed at once:
- definitions: single definitions and name lookups
- listings: list pages, counts, group metadata and statistics
- values: per-principal value lists

Definition entries carry no TTL and are invalidated on every write. Only
aggregated statistics expire on their own.
"""

import time
from abc import ABC, abstractmethod

from redis.asyncio import Redis
from redis.exceptions import RedisError

from profilefields.db.errors import ConnectionError
from profilefields.observability.logging import get_logger
from profilefields.observability.metrics import CACHE_ERRORS

logger = get_logger(__name__)

DEFINITIONS_GROUP = "definitions"
LISTINGS_GROUP = "listings"
VALUES_GROUP = "values"


class DefinitionCache(ABC):
    """Abstract interface for the definition cache.

    Values are opaque strings; callers serialize models themselves.
    """

    @abstractmethod
    async def get(self, group: str, key: str) -> str | None:
        """Get a cached entry.

        Args:
            group: Cache group name
            key: Entry key within the group

        Returns:
            Cached string, or None on a miss
        """
        pass

    @abstractmethod
    async def set(self, group: str, key: str, value: str, ttl: int | None = None) -> None:
        """Store an entry.

        Args:
            group: Cache group name
            key: Entry key within the group
            value: Serialized entry
            ttl: Seconds until expiry, None to keep until invalidated
        """
        pass

    @abstractmethod
    async def delete(self, group: str, key: str) -> None:
        """Remove one entry."""
        pass

    @abstractmethod
    async def flush_group(self, group: str) -> None:
        """Remove every entry in a group."""
        pass


class InMemoryDefinitionCache(DefinitionCache):
    """In-memory cache for testing and single-process deployments."""

    def __init__(self) -> None:
        """Initialize empty cache."""
        self._entries: dict[tuple[str, str], tuple[str, float | None]] = {}

    async def get(self, group: str, key: str) -> str | None:
        entry = self._entries.get((group, key))
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and time.monotonic() >= expires_at:
            del self._entries[(group, key)]
            return None
        return value

    async def set(self, group: str, key: str, value: str, ttl: int | None = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        self._entries[(group, key)] = (value, expires_at)

    async def delete(self, group: str, key: str) -> None:
        self._entries.pop((group, key), None)

    async def flush_group(self, group: str) -> None:
        for entry_key in [k for k in self._entries if k[0] == group]:
            del self._entries[entry_key]

    def keys(self, group: str) -> list[str]:
        """Keys currently held in a group (test utility)."""
        return [key for entry_group, key in self._entries if entry_group == group]

    def clear(self) -> None:
        """Clear all cache entries (test utility)."""
        self._entries.clear()


class NullDefinitionCache(DefinitionCache):
    """Cache that stores nothing; every read is a miss."""

    async def get(self, group: str, key: str) -> str | None:
        return None

    async def set(self, group: str, key: str, value: str, ttl: int | None = None) -> None:
        return None

    async def delete(self, group: str, key: str) -> None:
        return None

    async def flush_group(self, group: str) -> None:
        return None


class RedisDefinitionCache(DefinitionCache):
    """Redis-backed definition cache.

    Key format: {prefix}:{group}:{key}

    With ``fallback_on_error`` set, failed reads count as misses and failed
    writes are skipped. Failed invalidations (``delete``, ``flush_group``)
    always raise ConnectionError, since a surviving entry would be served
    stale.
    """

    def __init__(
        self,
        redis: Redis,
        key_prefix: str = "profilefields",
        fallback_on_error: bool = True,
    ) -> None:
        """Initialize Redis definition cache.

        Args:
            redis: Redis client instance
            key_prefix: Prefix for Redis keys
            fallback_on_error: Treat failed reads and writes as misses instead of raising
        """
        self._redis = redis
        self._key_prefix = key_prefix
        self._fallback_on_error = fallback_on_error

    def _make_key(self, group: str, key: str) -> str:
        """Build Redis key.

        Format: {prefix}:{group}:{key}
        """
        return f"{self._key_prefix}:{group}:{key}"

    def _handle_error(
        self, operation: str, error: RedisError, fallback: bool = True, **context: str
    ) -> None:
        CACHE_ERRORS.labels(operation=operation).inc()
        logger.warning("cache_backend_error", operation=operation, error=str(error), **context)
        if not (fallback and self._fallback_on_error):
            raise ConnectionError(f"Cache {operation} failed: {error}", cause=error) from error

    async def get(self, group: str, key: str) -> str | None:
        try:
            value = await self._redis.get(self._make_key(group, key))
        except RedisError as e:
            self._handle_error("get", e, group=group, key=key)
            return None
        if value is None:
            return None
        return value.decode() if isinstance(value, bytes) else value

    async def set(self, group: str, key: str, value: str, ttl: int | None = None) -> None:
        try:
            if ttl:
                await self._redis.set(self._make_key(group, key), value, ex=ttl)
            else:
                await self._redis.set(self._make_key(group, key), value)
        except RedisError as e:
            self._handle_error("set", e, group=group, key=key)

    async def delete(self, group: str, key: str) -> None:
        try:
            await self._redis.delete(self._make_key(group, key))
        except RedisError as e:
            self._handle_error("delete", e, fallback=False, group=group, key=key)

    async def flush_group(self, group: str) -> None:
        """Remove every key under the group prefix using SCAN + DEL."""
        pattern = f"{self._key_prefix}:{group}:*"
        removed = 0
        try:
            batch: list[str | bytes] = []
            async for redis_key in self._redis.scan_iter(match=pattern, count=500):
                batch.append(redis_key)
                if len(batch) >= 500:
                    removed += await self._redis.delete(*batch)
                    batch = []
            if batch:
                removed += await self._redis.delete(*batch)
        except RedisError as e:
            self._handle_error("flush_group", e, fallback=False, group=group)
        logger.debug("cache_group_flushed", group=group, removed=removed)
