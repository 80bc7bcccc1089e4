"""Named mutual-exclusion locks for whole-operation critical sections.

Usage:
    from libs.common.locks import get_operation_lock

    async with get_operation_lock("raffle-weekly").hold():
        ...

With REDIS_URL configured the lock is shared across processes; otherwise a
process-local asyncio lock is used.
"""

from __future__ import annotations

import asyncio
import contextlib
import weakref
from typing import AsyncIterator, Optional, Protocol

from redis.asyncio import Redis
from redis.exceptions import LockError

from libs.common.config import get_settings
from libs.common.logging import get_logger

logger = get_logger(__name__)


class OperationLockBusy(Exception):
    """Raised when a named lock could not be acquired within its timeout."""

    def __init__(self, name: str):
        super().__init__(f"operation lock '{name}' is held by another invocation")
        self.name = name


class OperationLock(Protocol):
    name: str

    def hold(self) -> contextlib.AbstractAsyncContextManager[None]: ...


class LocalOperationLock:
    # Locks are per event loop; an asyncio.Lock cannot be shared across loops
    _locks: weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[str, asyncio.Lock]] = (
        weakref.WeakKeyDictionary()
    )

    def __init__(self, name: str, *, blocking_timeout: float = 30.0):
        self.name = name
        self.blocking_timeout = blocking_timeout

    def _lock(self) -> asyncio.Lock:
        locks = self._locks.setdefault(asyncio.get_running_loop(), {})
        lock = locks.get(self.name)
        if lock is None:
            lock = locks[self.name] = asyncio.Lock()
        return lock

    @contextlib.asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        lock = self._lock()
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.blocking_timeout)
        except asyncio.TimeoutError:
            raise OperationLockBusy(self.name)
        try:
            yield
        finally:
            lock.release()


class RedisOperationLock:
    """Distributed lock backed by redis-py's Lock (SET NX + token release)."""

    def __init__(
        self,
        name: str,
        *,
        redis: Redis,
        timeout: float = 600.0,
        blocking_timeout: float = 30.0,
    ):
        self.name = name
        self.redis = redis
        # Lock auto-expires after `timeout` in case the holder dies
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    @contextlib.asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        lock = self.redis.lock(
            f"oplock:{self.name}",
            timeout=self.timeout,
            blocking_timeout=self.blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            raise OperationLockBusy(self.name)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                logger.warning("Operation lock %s expired before release", self.name)


_redis_client: Optional[Redis] = None


def _get_redis(url: str) -> Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(url)
    return _redis_client


def get_operation_lock(
    name: str, *, timeout: float = 600.0, blocking_timeout: Optional[float] = None
) -> OperationLock:
    settings = get_settings()
    if blocking_timeout is None:
        blocking_timeout = settings.RAFFLE_LOCK_TIMEOUT_SECONDS
    if settings.REDIS_URL:
        return RedisOperationLock(
            name,
            redis=_get_redis(settings.REDIS_URL),
            timeout=timeout,
            blocking_timeout=blocking_timeout,
        )
    return LocalOperationLock(name, blocking_timeout=blocking_timeout)
