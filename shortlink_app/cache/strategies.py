"""
Cache strategies using Strategy Pattern.
Allows switching between different cache backends (Redis, In-Memory, Null).

Used for short-lived unlock grants of password-protected links. Link
records themselves are never cached: a cached redirect would outlive a
delete, expiry or password change.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheStrategy(ABC):
    """
    Abstract base class for cache strategies.

    All methods are async because cache operations involve I/O (network for Redis).
    Implementations swallow backend errors: a cache outage only means
    visitors get asked for the password again.
    """

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        """
        Set value in cache with TTL (Time To Live) in seconds.

        Returns:
            True if successful, False otherwise
        """
        pass

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """True if the key is present and not expired"""
        pass


class RedisCache(CacheStrategy):
    """
    Redis cache on the asyncio client (redis.asyncio).

    Shared between instances, so an unlock granted by one replica is honoured
    by the others.
    """

    def __init__(self, redis_client):
        """
        Args:
            redis_client: redis.asyncio.Redis instance
        """
        self.redis = redis_client

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        try:
            return bool(await self.redis.setex(key, ttl, value))
        except Exception as e:
            logger.warning("Redis set error: %s", e)
            return False

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.redis.exists(key))
        except Exception as e:
            logger.warning("Redis exists error: %s", e)
            return False


class InMemoryCache(CacheStrategy):
    """
    In-memory cache using a dict of (value, expires_at).

    Per-process only, lost on restart. Expired entries are dropped lazily
    on read. Good for development, tests and single-instance deployments.
    """

    def __init__(self):
        self._cache: Dict[str, Tuple[str, float]] = {}

    def _live_entry(self, key: str) -> Optional[str]:
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self._cache[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        self._cache[key] = (value, time.monotonic() + ttl)
        return True

    async def exists(self, key: str) -> bool:
        return self._live_entry(key) is not None


class NullCache(CacheStrategy):
    """
    Null Object Pattern - cache that does nothing.

    With this backend every protected redirect asks for the password.
    """

    async def set(self, key: str, value: str, ttl: int = 3600) -> bool:
        return True

    async def exists(self, key: str) -> bool:
        return False
