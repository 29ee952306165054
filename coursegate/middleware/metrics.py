"""Prometheus metrics middleware: instruments every HTTP request.

For each request it tracks in-flight count, duration and a
(method, endpoint, status) counter.

WHY A MIDDLEWARE
------------------
Timing each route by hand means every new admin or payment route has to
remember to do it, and a forgotten one is a blind spot on the dashboard.
The middleware sees every request, including the 401s and 422s that never
reach a handler, so error rates include rejected traffic too.

WHY ROUTE TEMPLATES AS LABELS
-------------------------------
Every distinct label value is a separate time series in Prometheus. Using
the concrete path would create one series per course and per payment:

  /v1/courses/3f2a.../access
  /v1/courses/9c41.../access
  ...

The route template (``/v1/courses/{course_id}/access``) keeps it to one
series per route. Paths that match no route (scanners, typos) all share
the ``<unmatched>`` label for the same reason.
"""

from __future__ import annotations

import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from coursegate.core.metrics import ACTIVE_REQUESTS, REQUEST_COUNT, REQUEST_DURATION

UNMATCHED = "<unmatched>"


def endpoint_label(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path if isinstance(path, str) else UNMATCHED


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        # Scrapes would otherwise count themselves.
        if request.url.path == "/metrics":
            return await call_next(request)

        ACTIVE_REQUESTS.inc()
        start = time.monotonic()
        status_code = "500"

        try:
            response = await call_next(request)
            status_code = str(response.status_code)
        finally:
            duration = time.monotonic() - start
            ACTIVE_REQUESTS.dec()
            endpoint = endpoint_label(request)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status_code=status_code,
            ).inc()
            REQUEST_DURATION.labels(
                method=request.method,
                endpoint=endpoint,
            ).observe(duration)

        return response
