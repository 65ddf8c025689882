"""Per-vehicle writer serialization.

Availability check and the write that follows must happen as one unit for a
given vehicle. Writers take ``vehicle_lock(vehicle_id)`` around the whole
check-and-commit sequence; readers never lock.
"""

import asyncio
import logging
import weakref
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, AsyncExitStack, asynccontextmanager

import redis.asyncio as redis
from redis.exceptions import LockError, RedisError

from fleetbook.config import settings
from fleetbook.core.exceptions import ServiceUnavailable

logger = logging.getLogger(__name__)


class LocalVehicleLocks:
    """In-process registry of ``asyncio.Lock`` keyed by vehicle id.

    Entries are weakly referenced so locks for idle vehicles are collected.
    Only serializes writers inside a single worker process.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _get(self, vehicle_id: str) -> asyncio.Lock:
        lock = self._locks.get(vehicle_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[vehicle_id] = lock
        return lock

    @asynccontextmanager
    async def hold(self, vehicle_id: str) -> AsyncIterator[None]:
        lock = self._get(vehicle_id)
        async with lock:
            yield


class RedisVehicleLocks:
    """Redis-backed locks shared by every worker talking to the same Redis."""

    def __init__(
        self,
        redis_url: str | None = None,
        timeout: float | None = None,
        blocking_timeout: float | None = None,
    ) -> None:
        self.redis_url = redis_url or settings.redis_url
        self.timeout = timeout or settings.lock_timeout_seconds
        self.blocking_timeout = blocking_timeout or settings.lock_blocking_timeout_seconds
        self._redis: redis.Redis | None = None

    async def get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    @asynccontextmanager
    async def hold(self, vehicle_id: str) -> AsyncIterator[None]:
        client = await self.get_redis()
        lock = client.lock(
            f"vehicle-lock:{vehicle_id}",
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error(f"Redis lock error for vehicle {vehicle_id}: {e}")
            raise ServiceUnavailable("redis", "vehicle lock unavailable") from e
        if not acquired:
            logger.warning(f"Timed out waiting for vehicle lock {vehicle_id}")
            raise ServiceUnavailable("redis", f"vehicle {vehicle_id} is busy, retry later")

        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while held; the key is already gone.
                logger.warning(f"Vehicle lock {vehicle_id} expired before release")


def build_vehicle_locks() -> LocalVehicleLocks | RedisVehicleLocks:
    if settings.lock_backend == "redis":
        return RedisVehicleLocks()
    return LocalVehicleLocks()


_vehicle_locks = build_vehicle_locks()


def vehicle_lock(vehicle_id: str) -> AbstractAsyncContextManager[None]:
    """Exclusive scope for writers touching ``vehicle_id``'s schedule."""
    return _vehicle_locks.hold(vehicle_id)


@asynccontextmanager
async def vehicle_locks(*vehicle_ids: str) -> AsyncIterator[None]:
    """Hold the locks of several vehicles at once.

    Locks are taken in sorted order so two writers needing the same pair of
    vehicles cannot deadlock.
    """
    async with AsyncExitStack() as stack:
        for vehicle_id in sorted(set(vehicle_ids)):
            await stack.enter_async_context(vehicle_lock(vehicle_id))
        yield
