"""
Cache layer capability and in-process implementations.
"""

import time
from typing import Callable, Dict, Optional, Protocol, Tuple

from shared.logging import get_logger


class CacheLayer(Protocol):
    """Key -> bytes store with per-entry TTL.

    ``get`` returns None on a miss. Infrastructure failures raise
    CacheUnavailableError.
    """

    async def get(self, key: str) -> Optional[bytes]:
        ...

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        ...

    async def delete(self, key: str) -> None:
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...

    async def health_check(self) -> bool:
        ...


class NullCache:
    """Cache that never stores anything. Every read is a miss."""

    async def get(self, key: str) -> Optional[bytes]:
        return None

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None

    async def health_check(self) -> bool:
        return True


class InMemoryCache:
    """Process-local TTL cache.

    Single event loop only: each operation completes without awaiting, so
    reads and writes of one key are atomic with respect to other tasks.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[bytes, float]] = {}
        self.logger = get_logger("catalog.cache.memory")

    async def get(self, key: str) -> Optional[bytes]:
        entry = self._entries.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.logger.debug("Cache entry expired", cache_key=key)
            return None
        return value

    async def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def start(self) -> None:
        self.logger.info("In-memory cache started")

    async def stop(self) -> None:
        self._entries.clear()

    async def health_check(self) -> bool:
        return True

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry[1]

    def __len__(self) -> int:
        return len(self._entries)
