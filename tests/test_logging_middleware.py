"""
Tests for the request logging middleware.
"""

import pytest
import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient

from swapdesk.core.errors import NoQuoteAvailable, SwapPipelineError
from swapdesk.main import swap_pipeline_error_handler
from swapdesk.middleware import logging_middleware
from swapdesk.middleware.logging_middleware import RequestLoggingMiddleware
from swapdesk.middleware.rate_limit import RateLimiter, RateLimitMiddleware


class RecordingLogger:
    def __init__(self):
        self.events = []

    def _record(self, level, event, **fields):
        self.events.append((level, event, fields, structlog.contextvars.get_contextvars()))

    def info(self, event, **fields):
        self._record("info", event, **fields)

    def warning(self, event, **fields):
        self._record("warning", event, **fields)

    def error(self, event, **fields):
        self._record("error", event, **fields)


@pytest.fixture
def recorder(monkeypatch):
    recording = RecordingLogger()
    monkeypatch.setattr(logging_middleware, "logger", recording)
    return recording


def _app():
    app = FastAPI()
    app.add_middleware(RateLimitMiddleware, rate_limiter=RateLimiter(max_requests=1, window_seconds=60))
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(SwapPipelineError, swap_pipeline_error_handler)

    @app.get("/swap/ok")
    async def ok():
        return {"ok": True}

    @app.get("/swap/missing")
    async def missing():
        raise NoQuoteAvailable(upstream_code="82000")

    return app


def test_success_binds_client_and_request_id(recorder):
    client = TestClient(_app())

    response = client.get("/swap/ok", headers={"x-forwarded-for": "9.9.9.9", "x-request-id": "req-1"})

    assert response.headers["x-request-id"] == "req-1"
    level, event, fields, context = recorder.events[-1]
    assert (level, event) == ("info", "http_request")
    assert fields["status"] == 200
    assert fields["rate_limit_remaining"] == 0
    assert "error_code" not in fields
    assert context == {"request_id": "req-1", "client": "9.9.9.9"}


def test_pipeline_error_code_is_logged(recorder):
    client = TestClient(_app())

    response = client.get("/swap/missing", headers={"x-real-ip": "1.1.1.1"})

    assert response.status_code == 404
    level, _, fields, _ = recorder.events[-1]
    assert level == "warning"
    assert fields["error_code"] == "no_quote_available"


def test_rate_limited_request_is_logged(recorder):
    client = TestClient(_app())
    headers = {"x-real-ip": "2.2.2.2"}

    client.get("/swap/ok", headers=headers)
    response = client.get("/swap/ok", headers=headers)

    assert response.status_code == 429
    _, _, fields, context = recorder.events[-1]
    assert fields["error_code"] == "rate_limited"
    assert context["client"] == "2.2.2.2"
