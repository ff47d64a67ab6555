"""
HTTP request logging middleware.

One ``http_request`` event per request. The request id and the rate-limit
client key are bound into the structlog context so pipeline logs emitted
while the request runs carry them too. Failed requests report the
``SwapPipelineError`` code the exception handler or the rate limiter put on
``request.state.error_code``.
"""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from .rate_limit import client_identifier

logger = structlog.stdlib.get_logger("http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log swap API requests with client, outcome and timing."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        client = client_identifier(request)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, client=client)

        start = time.perf_counter()
        status_code = 500
        remaining = None

        try:
            response = await call_next(request)
            status_code = response.status_code
            remaining = response.headers.get("X-RateLimit-Remaining")
            response.headers["x-request-id"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            if status_code >= 500:
                log = logger.error
            elif status_code >= 400:
                log = logger.warning
            else:
                log = logger.info

            fields = {
                "method": request.method,
                "path": request.url.path,
                "status": status_code,
                "duration_ms": duration_ms,
            }
            if status_code >= 400:
                fields["error_code"] = getattr(request.state, "error_code", None)
            if remaining is not None:
                fields["rate_limit_remaining"] = int(remaining)

            log("http_request", **fields)
