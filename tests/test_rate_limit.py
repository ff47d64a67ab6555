"""
Tests for the fixed-window rate limiter and its middleware.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from swapdesk.core.errors import RateLimited
from swapdesk.middleware.rate_limit import RateLimiter, RateLimitMiddleware


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


class TestRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self):
        limiter = RateLimiter(max_requests=2, window_seconds=60, clock=FakeClock())

        first = await limiter.check("1.2.3.4")
        second = await limiter.check("1.2.3.4")
        third = await limiter.check("1.2.3.4")

        assert (first.allowed, first.remaining) == (True, 1)
        assert (second.allowed, second.remaining) == (True, 0)
        assert third.allowed is False

    @pytest.mark.asyncio
    async def test_clients_are_independent(self):
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())

        assert (await limiter.check("a")).allowed is True
        assert (await limiter.check("b")).allowed is True
        assert (await limiter.check("a")).allowed is False

    @pytest.mark.asyncio
    async def test_window_resets(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)

        await limiter.check("a")
        clock.now = 60.0
        assert (await limiter.check("a")).allowed is True

    @pytest.mark.asyncio
    async def test_enforce_reports_retry_after(self):
        clock = FakeClock()
        limiter = RateLimiter(max_requests=1, window_seconds=60, clock=clock)

        await limiter.enforce("a")
        clock.now = 45.5
        with pytest.raises(RateLimited) as exc_info:
            await limiter.enforce("a")

        assert exc_info.value.retry_after == 15
        assert exc_info.value.limit == 1


def _app(limiter):
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, rate_limiter=limiter)

    @app.get("/swap/ping")
    async def ping():
        return {"ok": True}

    @app.get("/healthz")
    async def health():
        return {"ok": True}

    return app


class TestMiddleware:
    def test_blocks_with_429_and_headers(self):
        client = TestClient(_app(RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())))

        ok = client.get("/swap/ping", headers={"x-forwarded-for": "9.9.9.9, 10.0.0.1"})
        blocked = client.get("/swap/ping", headers={"x-forwarded-for": "9.9.9.9"})

        assert ok.status_code == 200
        assert ok.headers["X-RateLimit-Remaining"] == "0"
        assert blocked.status_code == 429
        assert blocked.json()["code"] == "rate_limited"
        assert blocked.headers["Retry-After"] == "60"

    def test_other_clients_unaffected(self):
        client = TestClient(_app(RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())))

        client.get("/swap/ping", headers={"x-real-ip": "1.1.1.1"})
        response = client.get("/swap/ping", headers={"x-real-ip": "2.2.2.2"})

        assert response.status_code == 200

    def test_unlisted_paths_are_not_limited(self):
        client = TestClient(_app(RateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())))

        for _ in range(3):
            assert client.get("/healthz").status_code == 200
