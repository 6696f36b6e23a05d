"""
GeoTag Backend - Request ID Middleware
========================================

Assigns every request a short correlation id:
    - reuses the client's X-Request-ID header when present (the mobile app
      can tie a failed upload to server logs)
    - otherwise generates 8 hex chars of a UUID4
The id lives in a ContextVar (coroutine-local, safe under concurrent
requests), on request.state, in every error body, and in the response's
X-Request-ID header.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied ids longer than this are replaced, not trusted into logs
MAX_CLIENT_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")
        if not rid or len(rid) > MAX_CLIENT_ID_LENGTH:
            rid = uuid.uuid4().hex[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
