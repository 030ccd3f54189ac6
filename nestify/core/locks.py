"""
Per-container serialization of tree mutations.

Every mutation that reads and rewrites ``order`` values holds the lock of
each container it touches for the whole unit of work. Locks for several
containers are always taken in sorted key order so two mutations touching
the same pair of containers cannot deadlock.
"""

import asyncio
import logging
import os
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from nestify.core.exceptions import ConflictError

logger = logging.getLogger(__name__)

CONTAINER_LOCK_BACKEND = os.getenv("CONTAINER_LOCK_BACKEND", "local")
CONTAINER_LOCK_TIMEOUT = float(os.getenv("CONTAINER_LOCK_TIMEOUT", "10"))

LOCK_PREFIX = "nestify:container-lock:"


def container_key(owner_id, container_id=None) -> str:
    """Return the lock key of a container; the root level is keyed per owner."""
    if container_id is None:
        return f"root:{owner_id}"
    return f"playlist:{container_id}"


class ContainerLocks:
    """Base class for container lock backends."""

    def __init__(self, timeout: float = CONTAINER_LOCK_TIMEOUT):
        self.timeout = timeout

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """Hold the locks of all given containers for the duration of the block."""
        async with AsyncExitStack() as stack:
            for key in sorted(set(keys)):
                await stack.enter_async_context(self._acquire(key))
            yield

    def _acquire(self, key: str):
        raise NotImplementedError


class LocalContainerLocks(ContainerLocks):
    """In-process locks, one asyncio.Lock per container.

    asyncio.Lock wakes waiters in arrival order, which gives the
    first-come-first-served ordering required within a container.
    """

    def __init__(self, timeout: float = CONTAINER_LOCK_TIMEOUT):
        super().__init__(timeout)
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def _acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Timed out waiting for container lock {key}")
                raise ConflictError(
                    "Playlist is being modified, try again",
                    details={"container": key},
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)


class RedisContainerLocks(ContainerLocks):
    """Locks shared by every worker process through Redis."""

    def __init__(self, redis_client=None, timeout: float = CONTAINER_LOCK_TIMEOUT):
        super().__init__(timeout)
        self._redis = redis_client

    async def _client(self):
        if self._redis is None:
            from nestify.core.redis import get_redis

            self._redis = await get_redis()
        return self._redis

    @asynccontextmanager
    async def _acquire(self, key: str) -> AsyncIterator[None]:
        client = await self._client()
        lock = client.lock(
            f"{LOCK_PREFIX}{key}",
            timeout=self.timeout * 3,
            blocking_timeout=self.timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning(f"Timed out waiting for container lock {key}")
            raise ConflictError(
                "Playlist is being modified, try again", details={"container": key}
            )
        try:
            yield
        finally:
            await lock.release()


_container_locks: Optional[ContainerLocks] = None


def get_container_locks() -> ContainerLocks:
    """Return the process-wide lock backend selected by CONTAINER_LOCK_BACKEND."""
    global _container_locks

    if _container_locks is None:
        if CONTAINER_LOCK_BACKEND == "redis":
            _container_locks = RedisContainerLocks()
        else:
            _container_locks = LocalContainerLocks()
        logger.info(f"Using {CONTAINER_LOCK_BACKEND} container locks")

    return _container_locks


def tree_key(owner_id) -> str:
    """Lock key guarding the shape of an owner's forest (parent pointers)."""
    return f"tree:{owner_id}"
