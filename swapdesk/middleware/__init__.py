from .logging_middleware import RequestLoggingMiddleware
from .rate_limit import (
    RateLimiter,
    RateLimitMiddleware,
    RateLimitResult,
    client_identifier,
    get_rate_limiter,
)

__all__ = [
    "RateLimiter",
    "RateLimitMiddleware",
    "RateLimitResult",
    "RequestLoggingMiddleware",
    "client_identifier",
    "get_rate_limiter",
]
