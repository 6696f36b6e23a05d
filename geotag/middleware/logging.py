"""
GeoTag Backend - Access Logging Middleware
============================================

One log line per request on the "geotag.access" logger:

    POST /api/entries 201 84.2ms [a1b2c3d4] owner=<uuid> from 10.0.0.7

Level follows the status: 5xx → ERROR, 4xx → WARNING, else INFO.
Request bodies, photos and Authorization headers are never logged.
/health is skipped because load balancers hit it every few seconds.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from geotag.middleware.request_id import request_id_var

logger = logging.getLogger("geotag.access")

SKIPPED_PATHS = {"/health"}


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        # Set by the auth dependencies once the gate resolved a user
        owner_id = getattr(request.state, "owner_id", None)
        rid = request_id_var.get("")

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] owner=%s from %s",
            request.method,
            path,
            status,
            duration_ms,
            rid,
            owner_id or "-",
            client_ip,
            extra={
                "request_id": rid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "owner_id": str(owner_id) if owner_id else None,
            },
        )
        return response
