"""Async client for the OKX DEX aggregator (v5 REST API)."""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from ..config import settings
from ..core.errors import UpstreamUnavailable
from ..core.retry import BackoffPolicy, Sleeper, default_sleep
from .base import AggregatorProvider

logger = logging.getLogger(__name__)

QUOTE_PATH = "/api/v5/dex/aggregator/quote"
SWAP_PATH = "/api/v5/dex/aggregator/swap"

RATE_LIMIT_CODE = "50011"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def sign_request(secret_key: str, timestamp: str, method: str, request_path: str, body: str = "") -> str:
    """Base64 HMAC-SHA256 over ``timestamp + METHOD + path(+query) + body``."""
    prehash = f"{timestamp}{method.upper()}{request_path}{body}"
    digest = hmac.new(secret_key.encode("utf-8"), prehash.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


class OKXDexClient(AggregatorProvider):
    """
    Thin wrapper around the aggregator's quote and swap endpoints.

    Responses are returned as parsed JSON envelopes (``{"code", "msg",
    "data"}``); interpreting them is the normalizer's job. The only retry
    done here is re-sending the *same* request when OKX reports rate
    limiting (code ``50011`` or HTTP 429).
    """

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        secret_key: Optional[str] = None,
        passphrase: Optional[str] = None,
        project_id: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Sleeper = default_sleep,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.okx_api_key
        self.secret_key = secret_key if secret_key is not None else settings.okx_secret_key
        self.passphrase = passphrase if passphrase is not None else settings.okx_api_passphrase
        self.project_id = project_id if project_id is not None else settings.okx_project_id
        self.base_url = (base_url or settings.okx_base_url).rstrip("/")
        self.timeout_s = timeout_s if timeout_s is not None else settings.request_timeout_seconds
        self._client = client
        # one initial request plus the configured number of rate-limit re-sends
        self.backoff = backoff or BackoffPolicy(
            max_attempts=settings.okx_rate_limit_retries + 1,
            initial_delay_seconds=1.0,
            max_delay_seconds=8.0,
        )
        self._sleep = sleep
        self._clock = clock

    name = "okx"

    @property
    def has_credentials(self) -> bool:
        return all((self.api_key, self.secret_key, self.passphrase, self.project_id))

    async def ready(self) -> bool:
        return self.has_credentials

    def _headers(self, method: str, request_path: str) -> Dict[str, str]:
        timestamp = self._clock().isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return {
            "OK-ACCESS-KEY": self.api_key,
            "OK-ACCESS-SIGN": sign_request(self.secret_key, timestamp, method, request_path),
            "OK-ACCESS-TIMESTAMP": timestamp,
            "OK-ACCESS-PASSPHRASE": self.passphrase,
            "OK-ACCESS-PROJECT": self.project_id,
            "Content-Type": "application/json",
        }

    async def _send(self, request_path: str, headers: Dict[str, str]) -> httpx.Response:
        url = f"{self.base_url}{request_path}"
        if self._client is not None:
            return await self._client.get(url, headers=headers, timeout=self.timeout_s)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.get(url, headers=headers)

    async def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if not self.has_credentials:
            raise UpstreamUnavailable("Aggregator credentials are not configured", provider="okx")

        query = urlencode({k: str(v) for k, v in params.items() if v is not None})
        request_path = f"{path}?{query}" if query else path

        attempt = 0
        while True:
            attempt += 1
            try:
                response = await self._send(request_path, self._headers("GET", request_path))
            except httpx.TimeoutException as exc:
                logger.warning("OKX request timed out: %s", path)
                raise UpstreamUnavailable("Aggregator request timed out", provider="okx") from exc
            except httpx.HTTPError as exc:
                logger.warning("OKX request failed: %s %s", path, exc)
                raise UpstreamUnavailable(f"Aggregator unreachable: {exc}", provider="okx") from exc

            if response.status_code >= 500:
                raise UpstreamUnavailable(
                    f"Aggregator returned HTTP {response.status_code}",
                    provider="okx",
                    details={"status_code": response.status_code},
                )

            rate_limited = response.status_code == 429
            if not rate_limited:
                try:
                    body = response.json()
                except ValueError as exc:
                    raise UpstreamUnavailable(
                        "Aggregator returned a non-JSON response",
                        provider="okx",
                        details={"status_code": response.status_code},
                    ) from exc
                rate_limited = isinstance(body, dict) and str(body.get("code")) == RATE_LIMIT_CODE

            if not rate_limited:
                return body if isinstance(body, dict) else {"data": body}

            if not self.backoff.has_next(attempt):
                raise UpstreamUnavailable(
                    "Aggregator is rate limiting requests; try again shortly",
                    provider="okx",
                    details={"upstream_code": RATE_LIMIT_CODE, "attempts": attempt},
                )
            delay = self.backoff.get_delay(attempt)
            logger.info("OKX rate limited on %s, retrying in %.1fs (attempt %s)", path, delay, attempt)
            await self._sleep(delay)

    async def quote(
        self,
        *,
        chain_id: int,
        from_token_address: str,
        to_token_address: str,
        amount: int,
        slippage: str,
    ) -> Dict[str, Any]:
        params = {
            "chainId": chain_id,
            "chainIndex": chain_id,
            "fromTokenAddress": from_token_address,
            "toTokenAddress": to_token_address,
            "amount": amount,
            "slippage": slippage,
        }
        return await self._get(QUOTE_PATH, params)

    async def build_swap(
        self,
        *,
        chain_id: int,
        from_token_address: str,
        to_token_address: str,
        amount: int,
        slippage: str,
        user_wallet_address: str,
    ) -> Dict[str, Any]:
        params = {
            "chainId": chain_id,
            "chainIndex": chain_id,
            "fromTokenAddress": from_token_address,
            "toTokenAddress": to_token_address,
            "amount": amount,
            "slippage": slippage,
            "userWalletAddress": user_wallet_address,
        }
        return await self._get(SWAP_PATH, params)


__all__ = ["OKXDexClient", "sign_request", "QUOTE_PATH", "SWAP_PATH", "RATE_LIMIT_CODE"]
