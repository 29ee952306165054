from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coursegate.api.admin import router as admin_router
from coursegate.api.auth import router as auth_router
from coursegate.api.courses import router as courses_router
from coursegate.api.errors import register_error_handlers
from coursegate.api.health import router as health_router
from coursegate.api.materials import router as materials_router
from coursegate.api.metrics_endpoint import router as metrics_router
from coursegate.api.payments import router as payments_router
from coursegate.core.config import SETTINGS
from coursegate.core.logging import setup_logging
from coursegate.db.engine import lifespan_db
from coursegate.db.redis import lifespan_redis
from coursegate.db.seed import seed_dev_data
from coursegate.middleware.metrics import MetricsMiddleware
from coursegate.middleware.request_context import (
    RequestContextMiddleware,
    install_request_filter,
)

# Configure logging before anything else runs.
setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
install_request_filter()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    # Teardown runs in reverse order of startup.
    async with lifespan_db():
        async with lifespan_redis():
            if SETTINGS.is_dev:
                await seed_dev_data()
            yield


app = FastAPI(
    title="course-gate",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last-added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)

register_error_handlers(app)

app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(courses_router)
app.include_router(materials_router)
app.include_router(payments_router)
app.include_router(admin_router)

logger.info(
    "course-gate started  env=%s log_level=%s port=%d store=%s docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    SETTINGS.store_backend,
    "on" if SETTINGS.is_dev else "off",
)
