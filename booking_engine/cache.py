"""
Redis connection handling and distributed locking.

Capacity counts are never cached; Redis is only used to coordinate the
per-event critical section across processes.
"""

import asyncio
import logging
import time
import uuid
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
from redis.exceptions import RedisError
from redis.exceptions import ConnectionError as RedisConnectionError

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


class CacheKeyBuilder:
    """Helper class for building consistent Redis keys."""

    @staticmethod
    def event_lock(tenant_id: str, event_id: str) -> str:
        """Build key for the per-event booking lock."""
        return f"lock:event:{tenant_id}:{event_id}"


class RedisCache:
    """Redis client manager with connection handling."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.client: Optional[Redis] = None
        self.pool: Optional[redis.ConnectionPool] = None

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    async def initialize(self) -> None:
        """Initialize Redis connection pool and client."""
        try:
            # Create connection pool
            self.pool = redis.ConnectionPool.from_url(
                self.settings.redis_url,
                max_connections=self.settings.redis_max_connections,
                retry_on_timeout=True,
                socket_keepalive=True,
                health_check_interval=30
            )

            # Create Redis client
            self.client = Redis(connection_pool=self.pool)

            # Test connection
            await self.client.ping()
            logger.info("Redis client initialized successfully")

        except RedisConnectionError as e:
            logger.error("Failed to connect to Redis: %s", e)
            raise
        except Exception as e:
            logger.error("Failed to initialize Redis client: %s", e)
            raise

    async def close(self) -> None:
        """Close Redis connections."""
        if self.client:
            await self.client.aclose()
            self.client = None
        if self.pool:
            await self.pool.disconnect()
            self.pool = None
        logger.info("Redis connections closed")

    async def ping(self) -> bool:
        if not self.client:
            return False
        try:
            return bool(await self.client.ping())
        except RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False


class DistributedLock:
    """Distributed lock implementation using Redis."""

    RELEASE_SCRIPT = """
    if redis.call("GET", KEYS[1]) == ARGV[1] then
        return redis.call("DEL", KEYS[1])
    else
        return 0
    end
    """

    def __init__(self, cache: RedisCache, key: str, timeout: int = 30):
        """
        Initialize distributed lock.

        Args:
            cache: Redis client manager
            key: Lock key
            timeout: Lock expiry in seconds, so a crashed holder cannot block forever
        """
        self.cache = cache
        self.key = key
        self.timeout = timeout
        self.identifier = uuid.uuid4().hex

    async def acquire(self, blocking: bool = True, timeout: Optional[float] = None) -> bool:
        """
        Acquire the distributed lock.

        Args:
            blocking: Whether to block until lock is acquired
            timeout: Maximum time to wait for lock (seconds)

        Returns:
            True if lock acquired, False otherwise

        Raises:
            RedisError: if Redis cannot be reached
        """
        if not self.cache.client:
            raise RedisConnectionError("Redis client not initialized")

        deadline = time.monotonic() + timeout if timeout else None

        while True:
            # Try to acquire lock with SET NX EX
            acquired = await self.cache.client.set(
                self.key,
                self.identifier,
                nx=True,
                ex=self.timeout
            )

            if acquired:
                return True

            if not blocking:
                return False

            if deadline is not None and time.monotonic() >= deadline:
                return False

            # Wait a bit before retrying
            await asyncio.sleep(0.05)

    async def release(self) -> bool:
        """
        Release the distributed lock.

        Returns:
            True if lock released, False otherwise
        """
        if not self.cache.client:
            return False

        try:
            # Only delete the lock if we still own it
            result = await self.cache.client.eval(
                self.RELEASE_SCRIPT, 1, self.key, self.identifier
            )
            return bool(result)

        except RedisError as e:
            logger.warning("Failed to release lock %s: %s", self.key, e)
            return False


# Global Redis client manager used by the API process
cache = RedisCache()


def get_cache() -> RedisCache:
    """Get the global Redis client manager."""
    return cache
