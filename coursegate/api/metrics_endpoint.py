"""Prometheus scrape endpoint (text exposition format, not JSON).

WHY PULL, NOT PUSH
--------------------
The service does not send metrics anywhere. It keeps counters in process
memory (prometheus_client) and Prometheus fetches them from /metrics on
its own schedule. If Prometheus is down the service is unaffected, and a
failed scrape is itself a signal that the instance is unhealthy.

The route is left out of the OpenAPI schema and out of the envelope: the
scraper expects the plain exposition format, not ``{"success": ...}``.
Scrapes are also skipped by MetricsMiddleware so they do not count
themselves.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

router = APIRouter(tags=["observability"])


@router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
