"""Keyed mutual exclusion.

Two callers holding the same key never run their critical sections at the
same time; different keys never wait on each other. Used to serialize
registration creation per (user, course) and JSON-file writes per
collection.

InMemoryKeyedLock  -- asyncio.Lock per key, dropped once nobody holds or
                      waits on it, so the table does not grow with every
                      (user, course) pair ever seen.
RedisKeyedLock     -- redis-py's Lock (SET NX PX + Lua release), shared by
                      every process pointed at the same Redis.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Protocol, runtime_checkable

from coursegate.db.redis import redis_pool

logger = logging.getLogger(__name__)


@runtime_checkable
class KeyedLock(Protocol):
    def hold(self, key: str) -> AbstractAsyncContextManager[None]:
        """Async context manager that owns ``key`` for its duration."""
        ...


class InMemoryKeyedLock:
    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


class RedisKeyedLock:
    _PREFIX = "lock:"

    def __init__(
        self,
        redis_client,
        *,
        timeout_seconds: float = 30.0,
        blocking_timeout_seconds: float = 60.0,
    ) -> None:
        self._redis = redis_client
        # timeout: auto-release if the holder dies mid-section.
        self._timeout = timeout_seconds
        self._blocking_timeout = blocking_timeout_seconds

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._redis.lock(
            f"{self._PREFIX}{key}",
            timeout=self._timeout,
            blocking_timeout=self._blocking_timeout,
        )
        acquired = await lock.acquire()
        if not acquired:
            raise TimeoutError(f"could not acquire lock {key!r}")
        try:
            yield
        finally:
            await lock.release()


def registration_key(user_id: str, course_id: str) -> str:
    return f"registration:{user_id}:{course_id}"


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

if redis_pool is not None:
    registration_lock: KeyedLock = RedisKeyedLock(redis_pool)
else:
    registration_lock = InMemoryKeyedLock()
