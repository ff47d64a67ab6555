"""HTTP client for the downstream settlement ledger webhook."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ..config import settings


class LedgerClient:
    """
    POSTs settlement records to a fixed webhook.

    Returns the raw response without raising on status; the notifier decides
    what counts as delivered. Transport failures propagate as ``httpx.HTTPError``.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url or settings.ledger_webhook_url
        self.timeout_s = timeout_s if timeout_s is not None else settings.request_timeout_seconds
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {
            "content-type": "application/json",
            "user-agent": "swapdesk-ledger/1.0",
        }

    async def post_record(self, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(
                self.url, json=payload, headers=self._headers(), timeout=self.timeout_s
            )
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.post(self.url, json=payload, headers=self._headers())


__all__ = ["LedgerClient"]
