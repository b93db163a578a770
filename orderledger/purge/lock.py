"""Run-level locks serializing purge executions.

A purge run that overlaps another could read a draft list the other
run is already deleting from. Every run takes the lock first and
skips when it is held.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from redis.asyncio import Redis
from redis.exceptions import RedisError

from orderledger.observability.logging import get_logger
from orderledger.purge.errors import PurgeLockError

logger = get_logger(__name__)


class PurgeLock(ABC):
    """Abstract run lock."""

    @abstractmethod
    def acquire(self, name: str) -> AsyncGenerator[bool, None]:
        """Try to take the lock.

        Usage:
            async with lock.acquire("draft-purge") as acquired:
                if acquired:
                    ...

        Yields:
            True if the lock was taken, False if another holder has it

        Raises:
            PurgeLockError: If the lock backend cannot be reached
        """
        pass


class LocalPurgeLock(PurgeLock):
    """In-process lock, one asyncio.Lock per name.

    Only serializes runs inside a single event loop. Use RedisPurgeLock
    when several workers can trigger a purge.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    @asynccontextmanager
    async def acquire(self, name: str) -> AsyncGenerator[bool, None]:
        lock = self._locks.setdefault(name, asyncio.Lock())
        if lock.locked():
            yield False
            return
        async with lock:
            yield True


class RedisPurgeLock(PurgeLock):
    """Redis-backed distributed run lock.

    Lock key format: purgelock:{name}
    """

    def __init__(
        self,
        redis: Redis,
        lock_timeout: int = 3600,
        blocking_timeout: float = 0.0,
    ) -> None:
        """Initialize purge lock.

        Args:
            redis: Redis client instance
            lock_timeout: How long the lock is held before auto-release (seconds)
            blocking_timeout: How long to wait for a held lock (seconds)
        """
        self._redis = redis
        self._lock_timeout = lock_timeout
        self._blocking_timeout = blocking_timeout

    def _key(self, name: str) -> str:
        """Build Redis lock key."""
        return f"purgelock:{name}"

    @asynccontextmanager
    async def acquire(self, name: str) -> AsyncGenerator[bool, None]:
        lock = self._redis.lock(
            self._key(name),
            timeout=self._lock_timeout,
            blocking_timeout=self._blocking_timeout,
        )

        try:
            acquired = await lock.acquire(blocking=self._blocking_timeout > 0)
        except RedisError as e:
            logger.error("purge_lock_acquire_failed", name=name, error=str(e))
            raise PurgeLockError(name, cause=e) from e

        try:
            yield acquired
        finally:
            if acquired:
                try:
                    await lock.release()
                except RedisError as e:
                    # Expired before release, or Redis went away; the timeout frees it
                    logger.warning("purge_lock_release_failed", name=name, error=str(e))
