"""
Redis cache layer for response caching and rate limiting.

Provides:
- Generic get/set/delete cache operations
- TTL management
- Cache key namespacing

This is the shared, cross-process cache. The orgname availability cache is
process-local and lives in ``app.core.orgname_cache``.
"""

import json
import logging
from typing import Any

import redis.asyncio as aioredis
from fastapi import Request

logger = logging.getLogger(__name__)


class RedisCache:
    """
    Redis-based cache manager.

    Every operation fails gracefully: when Redis is unreachable reads miss
    and writes are dropped, so the API keeps serving from the database.
    """

    def __init__(self, url: str, default_ttl: int = 300, prefix: str = "orgspace") -> None:
        self.url = url
        self.default_ttl = default_ttl
        self.prefix = prefix
        self._client: aioredis.Redis | None = None

    async def init(self) -> None:
        """Initialize Redis connection pool."""
        logger.info("Initializing Redis connection...")

        self._client = aioredis.from_url(
            self.url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )

        # Test connection
        await self._client.ping()
        logger.info("Redis connection initialized")

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")

    @property
    def available(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> aioredis.Redis:
        """Get Redis client."""
        if not self._client:
            raise RuntimeError("Cache not initialized. Call init() first.")
        return self._client

    def _build_key(self, namespace: str, key: str) -> str:
        """
        Build namespaced cache key.

        Format: orgspace:{namespace}:{key}
        Example: orgspace:plans:active
        """
        return f"{self.prefix}:{namespace}:{key}"

    async def get(self, namespace: str, key: str) -> Any | None:
        """
        Get value from cache.

        Returns:
            Deserialized value or None if not found
        """
        cache_key = self._build_key(namespace, key)

        try:
            value = await self.client.get(cache_key)

            if value is None:
                return None

            return json.loads(value)

        except Exception as e:
            logger.warning(f"Cache get error: {cache_key} - {e}")
            return None

    async def set(
        self,
        namespace: str,
        key: str,
        value: Any,
        ttl: int | None = None,
    ) -> bool:
        """
        Set value in cache.

        Args:
            namespace: Cache namespace
            key: Cache key
            value: Value to cache (must be JSON-serializable)
            ttl: Time-to-live in seconds (None = use default)

        Returns:
            True if set successfully
        """
        cache_key = self._build_key(namespace, key)
        ttl = ttl or self.default_ttl

        try:
            serialized = json.dumps(value, default=str)
            await self.client.set(cache_key, serialized, ex=ttl)
            return True

        except Exception as e:
            logger.warning(f"Cache set error: {cache_key} - {e}")
            return False

    async def delete(self, namespace: str, key: str) -> bool:
        """Delete specific cache entry."""
        cache_key = self._build_key(namespace, key)

        try:
            result = await self.client.delete(cache_key)
            return result > 0

        except Exception as e:
            logger.warning(f"Cache delete error: {cache_key} - {e}")
            return False

    async def increment(
        self,
        namespace: str,
        key: str,
        ttl: int | None = None,
    ) -> int:
        """
        Increment a counter in cache.

        Used for rate limiting. Creates the key if it doesn't exist; the
        TTL is only set on creation so the window stays fixed.

        Returns:
            New counter value
        """
        cache_key = self._build_key(namespace, key)

        try:
            pipe = self.client.pipeline()
            pipe.incr(cache_key)
            if ttl:
                pipe.expire(cache_key, ttl, nx=True)

            results = await pipe.execute()
            return results[0]

        except Exception as e:
            logger.error(f"Cache increment error: {cache_key} - {e}")
            raise

    async def get_ttl(self, namespace: str, key: str) -> int:
        """Get remaining TTL for a key in seconds."""
        cache_key = self._build_key(namespace, key)

        try:
            return await self.client.ttl(cache_key)
        except Exception as e:
            logger.warning(f"Cache TTL error: {cache_key} - {e}")
            return -1


def get_redis_cache(request: Request) -> RedisCache:
    return request.app.state.redis
