"""Redis connection management.

Mirrors engine.py: when REDIS_URL is set a shared pool is created and the
registration critical section uses Redis locks, so several API processes
serialize on the same (user, course) key. Without it the lock falls back to
in-process asyncio locks, which is correct for a single process.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as aioredis

from coursegate.core.config import SETTINGS

logger = logging.getLogger(__name__)

if SETTINGS.redis_url:
    redis_pool: aioredis.Redis | None = aioredis.from_url(  # type: ignore[type-arg]
        SETTINGS.redis_url,
        decode_responses=True,
        max_connections=20,
    )
else:
    redis_pool = None


@asynccontextmanager
async def lifespan_redis() -> AsyncGenerator[None, None]:
    """Verify Redis on startup and close the pool on shutdown."""
    if redis_pool is None:
        logger.info("No REDIS_URL configured, registration locks are in-process")
        yield
        return

    try:
        await redis_pool.ping()  # type: ignore[misc]
        logger.info("Redis connected: %s", SETTINGS.redis_url)
    except Exception:
        logger.exception("Redis connection failed on startup")
        raise

    yield

    await redis_pool.aclose()
    logger.info("Redis connection pool closed")
