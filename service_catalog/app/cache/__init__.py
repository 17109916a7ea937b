"""
Cache package for the Catalog Service.

Provides the cache layer capability consumed by repositories, its Redis,
in-memory and null implementations, and the key/serialization policy for
cached records.
"""

from .base import CacheLayer, InMemoryCache, NullCache
from .policy import CourseSerializer, make_cache_key
from .redis_cache import RedisCache


def build_cache(backend: str, redis_url: str, socket_timeout: float = 5.0) -> CacheLayer:
    """Create the cache layer selected by configuration."""
    if backend == "redis":
        return RedisCache(redis_url, socket_timeout=socket_timeout)
    if backend == "memory":
        return InMemoryCache()
    if backend == "none":
        return NullCache()
    raise ValueError(f"unknown cache backend: {backend!r}")


__all__ = [
    "CacheLayer",
    "CourseSerializer",
    "InMemoryCache",
    "NullCache",
    "RedisCache",
    "build_cache",
    "make_cache_key",
]
