"""
Redis caching layer for the Catalog Service.
"""

from typing import Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger
from shared.errors import CacheUnavailableError


class RedisCache:
    """Redis-backed cache layer storing serialized records as raw bytes."""

    def __init__(self, redis_url: str, socket_timeout: float = 5.0):
        self.redis_url = redis_url
        self.socket_timeout = socket_timeout
        self.logger = get_logger("catalog.cache.redis")
        self.redis: Optional[redis.Redis] = None

    async def start(self):
        """Start the Redis cache."""
        self.redis = redis.from_url(
            self.redis_url,
            decode_responses=False,
            socket_connect_timeout=self.socket_timeout,
            socket_timeout=self.socket_timeout,
            health_check_interval=30
        )

        try:
            await self.redis.ping()
        except (RedisError, OSError) as e:
            self.logger.error("Failed to start Redis cache", error=str(e))
            raise CacheUnavailableError("Redis ping failed", {"error": str(e)}) from e

        self.logger.info("Redis cache started")

    async def stop(self):
        """Stop the Redis cache."""
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis cache stopped")

    async def get(self, key: str) -> Optional[bytes]:
        """Get a cached value. None is a miss."""
        client = self._client()
        try:
            return await client.get(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError("Redis GET failed", {"key": key, "error": str(e)}) from e

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        """Cache a value with a TTL."""
        client = self._client()
        try:
            await client.setex(key, ttl_seconds, value)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError("Redis SETEX failed", {"key": key, "error": str(e)}) from e

    async def delete(self, key: str) -> None:
        """Remove a cached value. Deleting a missing key is not an error."""
        client = self._client()
        try:
            await client.delete(key)
        except (RedisError, OSError) as e:
            raise CacheUnavailableError("Redis DEL failed", {"key": key, "error": str(e)}) from e

    async def health_check(self) -> bool:
        """Check Redis health."""
        if self.redis is None:
            return False
        try:
            await self.redis.ping()
            return True
        except (RedisError, OSError):
            return False

    def _client(self) -> redis.Redis:
        if self.redis is None:
            raise CacheUnavailableError("Redis cache not started")
        return self.redis
