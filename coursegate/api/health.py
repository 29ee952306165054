"""Health and readiness endpoints.

  /health (liveness):  is the process alive? Also reports which document
                       store backend is active and whether Redis answers.
                       Always 200; ``status`` says "ok" or "degraded".
  /ready (readiness):  can this instance take traffic? 503 when the SQL
                       store is configured but unreachable.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from coursegate.core.config import SETTINGS
from coursegate.db.engine import engine
from coursegate.db.redis import redis_pool

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def _database_ok() -> bool:
    if engine is None:
        return True
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Database ping failed", exc_info=True)
        return False
    return True


@router.get("/health")
async def health() -> dict:
    checks: dict[str, str] = {"store": SETTINGS.store_backend}
    overall = "ok"

    if redis_pool is not None:
        try:
            await redis_pool.ping()  # type: ignore[misc]
            checks["redis"] = "ok"
        except Exception:
            logger.warning("Redis ping failed", exc_info=True)
            checks["redis"] = "degraded"
            overall = "degraded"
    else:
        checks["redis"] = "not_configured"

    if engine is not None:
        checks["database"] = "ok" if await _database_ok() else "degraded"
        if checks["database"] != "ok":
            overall = "degraded"

    return {"status": overall, "checks": checks}


@router.get("/ready")
async def ready() -> Response:
    if not await _database_ok():
        return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    return Response(status_code=status.HTTP_200_OK)
