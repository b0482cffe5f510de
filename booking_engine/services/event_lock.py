"""
Per-event lock serializing decide-and-write sequences.

Keyed by (tenant_id, event_id). The ``local`` backend uses asyncio locks and
only serializes within one process; the ``redis`` backend uses a Redis
``SET NX EX`` lock and serializes across processes.
"""

import asyncio
import logging
import weakref
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from uuid import UUID

from redis.exceptions import RedisError

from ..cache import CacheKeyBuilder, DistributedLock, RedisCache, get_cache
from ..config import Settings, get_settings
from ..utils.exceptions import UnavailableError

logger = logging.getLogger(__name__)


class EventLockManager:
    """Hands out the critical section for one event at a time."""

    def __init__(self, settings: Optional[Settings] = None, cache: Optional[RedisCache] = None):
        self.settings = settings or get_settings()
        self.backend = self.settings.event_lock_backend
        self.cache = cache
        self._local_locks: "weakref.WeakValueDictionary[tuple, asyncio.Lock]" = weakref.WeakValueDictionary()

    @asynccontextmanager
    async def hold(self, event_id: UUID, tenant_id: UUID) -> AsyncIterator[None]:
        """
        Hold the lock for an event.

        Raises:
            UnavailableError: if the lock cannot be acquired in time.
        """
        if self.backend == "redis":
            async with self._hold_redis(event_id, tenant_id):
                yield
        else:
            async with self._hold_local(event_id, tenant_id):
                yield

    @asynccontextmanager
    async def _hold_local(self, event_id: UUID, tenant_id: UUID) -> AsyncIterator[None]:
        key = (str(tenant_id), str(event_id))
        lock = self._local_locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._local_locks[key] = lock

        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.settings.event_lock_timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(f"Timed out waiting for event lock {key}")
            raise UnavailableError("Event is busy, please retry") from e

        try:
            yield
        finally:
            lock.release()

    @asynccontextmanager
    async def _hold_redis(self, event_id: UUID, tenant_id: UUID) -> AsyncIterator[None]:
        cache = self.cache or get_cache()
        lock = DistributedLock(
            cache,
            CacheKeyBuilder.event_lock(str(tenant_id), str(event_id)),
            timeout=self.settings.event_lock_ttl_seconds,
        )

        try:
            acquired = await lock.acquire(timeout=self.settings.event_lock_timeout_seconds)
        except RedisError as e:
            logger.error(f"Redis unavailable while locking event {event_id}: {e}")
            raise UnavailableError() from e

        if not acquired:
            logger.warning(f"Timed out waiting for event lock {lock.key}")
            raise UnavailableError("Event is busy, please retry")

        try:
            yield
        finally:
            await lock.release()
