"""
Rate limiting middleware with in-memory storage.

Fixed-window limiter keyed by client IP, consulted before any route that
reaches the aggregator, the chain or the ledger.
"""

import asyncio
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional, Sequence

from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..config import settings
from ..core.errors import RateLimited


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_time: float  # clock value at which the current window ends
    limit: int

    def retry_after(self, now: float) -> int:
        return max(1, math.ceil(self.reset_time - now))


@dataclass
class _Window:
    count: int
    reset_time: float


class RateLimiter:
    """
    Fixed-window rate limiter.

    State lives in process memory, so limits are per worker process.
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests or settings.rate_limit_max_requests
        self.window_seconds = window_seconds or settings.rate_limit_window_seconds
        self._clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = asyncio.Lock()

    def _prune(self, now: float) -> None:
        expired = [key for key, window in self._windows.items() if now >= window.reset_time]
        for key in expired:
            del self._windows[key]

    async def check(self, key: str) -> RateLimitResult:
        """Count one request for ``key`` and report whether it is allowed."""
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None or now >= window.reset_time:
                if len(self._windows) > 10_000:
                    self._prune(now)
                window = _Window(count=0, reset_time=now + self.window_seconds)
                self._windows[key] = window

            if window.count >= self.max_requests:
                return RateLimitResult(False, 0, window.reset_time, self.max_requests)

            window.count += 1
            return RateLimitResult(
                True,
                self.max_requests - window.count,
                window.reset_time,
                self.max_requests,
            )

    async def enforce(self, key: str) -> RateLimitResult:
        """Like :meth:`check` but raises ``RateLimited`` when exhausted."""
        result = await self.check(key)
        if not result.allowed:
            raise RateLimited(
                result.limit,
                self.window_seconds,
                result.retry_after(self._clock()),
            )
        return result

    def reset(self) -> None:
        self._windows.clear()


def client_identifier(request: Request) -> str:
    """Client IP: first X-Forwarded-For hop, then CF-Connecting-IP, X-Real-IP, peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    return request.client.host if request.client else "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    FastAPI middleware for rate limiting.
    """

    def __init__(
        self,
        app,
        rate_limiter: Optional[RateLimiter] = None,
        include_prefixes: Optional[Sequence[str]] = None,
    ):
        super().__init__(app)
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.include_prefixes = tuple(include_prefixes or ("/swap", "/tools"))

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        path = request.url.path
        if not path.startswith(self.include_prefixes):
            return await call_next(request)

        try:
            result = await self.rate_limiter.enforce(client_identifier(request))
        except RateLimited as e:
            request.state.error_code = e.code
            return JSONResponse(
                content={"error": e.message, "code": e.code, "retry_after": e.retry_after},
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                headers={
                    "Retry-After": str(e.retry_after),
                    "X-RateLimit-Limit": str(e.limit),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Window": str(e.window_seconds),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(result.limit)
        response.headers["X-RateLimit-Remaining"] = str(result.remaining)
        return response


# Singleton instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the singleton rate limiter instance."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter
