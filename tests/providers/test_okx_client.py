"""
Tests for the OKX DEX client: request signing, rate-limit retry, failures.
"""

import base64
import hashlib
import hmac
from datetime import datetime, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from swapdesk.core.errors import UpstreamUnavailable
from swapdesk.core.retry import BackoffPolicy
from swapdesk.providers.okx import OKXDexClient, QUOTE_PATH, SWAP_PATH, sign_request

FIXED_NOW = datetime(2024, 5, 1, 12, 30, 45, 123000, tzinfo=timezone.utc)


def _client(handler, sleeps=None, retries=3, **overrides):
    async def _sleep(seconds):
        if sleeps is not None:
            sleeps.append(seconds)

    options = dict(
        api_key="key",
        secret_key="secret",
        passphrase="pass",
        project_id="project",
        base_url="https://okx.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        backoff=BackoffPolicy(max_attempts=retries + 1, initial_delay_seconds=1.0, max_delay_seconds=8.0),
        sleep=_sleep,
        clock=lambda: FIXED_NOW,
    )
    options.update(overrides)
    return OKXDexClient(**options)


def _quote_kwargs():
    return dict(
        chain_id=43114,
        from_token_address="0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E",
        to_token_address="0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE",
        amount=1_000_000,
        slippage="0.005",
    )


def test_sign_request_matches_hmac():
    expected = base64.b64encode(
        hmac.new(b"secret", b"2024-05-01T12:30:45.123ZGET/api/v5/x?a=1", hashlib.sha256).digest()
    ).decode()
    assert sign_request("secret", "2024-05-01T12:30:45.123Z", "get", "/api/v5/x?a=1") == expected


@pytest.mark.asyncio
async def test_quote_sends_signed_get():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"code": "0", "data": [{"toTokenAmount": "1"}]})

    body = await _client(handler).quote(**_quote_kwargs())

    assert body["code"] == "0"
    request = seen[0]
    assert request.method == "GET"
    assert request.url.path == QUOTE_PATH
    params = parse_qs(urlparse(str(request.url)).query)
    assert params["chainIndex"] == ["43114"]
    assert params["amount"] == ["1000000"]
    assert params["slippage"] == ["0.005"]

    timestamp = request.headers["OK-ACCESS-TIMESTAMP"]
    assert timestamp == "2024-05-01T12:30:45.123Z"
    request_path = request.url.raw_path.decode()
    assert request.headers["OK-ACCESS-SIGN"] == sign_request("secret", timestamp, "GET", request_path)
    assert request.headers["OK-ACCESS-PROJECT"] == "project"


@pytest.mark.asyncio
async def test_build_swap_includes_wallet():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"code": "0", "data": []})

    wallet = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
    await _client(handler).build_swap(**_quote_kwargs(), user_wallet_address=wallet)

    assert seen[0].url.path == SWAP_PATH
    assert seen[0].url.params["userWalletAddress"] == wallet


@pytest.mark.asyncio
async def test_rate_limit_code_is_retried():
    sleeps = []
    responses = [
        httpx.Response(200, json={"code": "50011", "msg": "Too Many Requests"}),
        httpx.Response(429, text="slow down"),
        httpx.Response(200, json={"code": "0", "data": [{"toTokenAmount": "5"}]}),
    ]

    def handler(request):
        return responses.pop(0)

    body = await _client(handler, sleeps).quote(**_quote_kwargs())

    assert body["data"][0]["toTokenAmount"] == "5"
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_rate_limit_exhaustion():
    sleeps = []

    def handler(request):
        return httpx.Response(200, json={"code": "50011", "msg": "Too Many Requests"})

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await _client(handler, sleeps, retries=2).quote(**_quote_kwargs())

    assert exc_info.value.details["upstream_code"] == "50011"
    assert exc_info.value.details["attempts"] == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
async def test_other_error_codes_are_returned_for_normalization():
    def handler(request):
        return httpx.Response(200, json={"code": "82000", "msg": "Insufficient liquidity", "data": []})

    body = await _client(handler).quote(**_quote_kwargs())
    assert body["code"] == "82000"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [httpx.Response(503, text="maintenance"), httpx.Response(200, text="<html>")],
)
async def test_bad_responses_are_upstream_failures(response):
    def handler(request):
        return response

    with pytest.raises(UpstreamUnavailable):
        await _client(handler).quote(**_quote_kwargs())


@pytest.mark.asyncio
async def test_transport_error():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await _client(handler).quote(**_quote_kwargs())
    assert exc_info.value.context.provider == "okx"


@pytest.mark.asyncio
async def test_missing_credentials_never_call_out():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    client = _client(handler, api_key="")
    assert await client.ready() is False
    with pytest.raises(UpstreamUnavailable):
        await client.quote(**_quote_kwargs())
    assert calls == []
