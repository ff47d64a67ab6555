"""Minimal JSON-RPC reader for the chain state the swap flow needs."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..core.errors import UnsupportedChain, UpstreamUnavailable
from ..core.execution.calldata import (
    decode_uint256,
    encode_allowance,
    encode_balance_of,
)
from .base import ChainStateProvider

logger = logging.getLogger(__name__)


class ChainReader(ChainStateProvider):
    """
    Read-only chain access over plain JSON-RPC.

    Every read is live; nothing here caches, because allowance and balance
    can change between two requests.
    """

    name = "rpc"

    def __init__(
        self,
        rpc_urls: Optional[Dict[int, str]] = None,
        *,
        timeout_s: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._rpc_urls = dict(rpc_urls if rpc_urls is not None else settings.rpc_urls)
        self.timeout_s = timeout_s if timeout_s is not None else settings.request_timeout_seconds
        self._client = client

    @property
    def chain_ids(self) -> List[int]:
        return sorted(self._rpc_urls)

    async def ready(self) -> bool:
        return bool(self._rpc_urls)

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(url, json=payload, timeout=self.timeout_s)
        async with httpx.AsyncClient(timeout=self.timeout_s) as client:
            return await client.post(url, json=payload)

    async def _rpc_call(self, chain_id: int, method: str, params: List[Any]) -> Any:
        """Make an RPC call to the chain."""
        rpc_url = self._rpc_urls.get(chain_id)
        if not rpc_url:
            raise UnsupportedChain(chain_id, f"No RPC endpoint configured for chain {chain_id}")

        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": 1,
        }

        try:
            response = await self._post(rpc_url, payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as exc:
            raise UpstreamUnavailable(
                f"Chain RPC {method} failed: {exc}",
                provider="rpc",
                details={"chain_id": chain_id, "method": method},
            ) from exc
        except ValueError as exc:
            raise UpstreamUnavailable(
                f"Chain RPC {method} returned invalid JSON",
                provider="rpc",
                details={"chain_id": chain_id, "method": method},
            ) from exc

        if "error" in result:
            raise UpstreamUnavailable(
                f"RPC error: {result['error']}",
                provider="rpc",
                details={"chain_id": chain_id, "method": method},
            )

        return result.get("result")

    async def eth_call(self, chain_id: int, to: str, data: str) -> str:
        return await self._rpc_call(chain_id, "eth_call", [{"to": to, "data": data}, "latest"])

    async def erc20_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        result = await self.eth_call(chain_id, token, encode_allowance(owner, spender))
        return self._decode(result, chain_id, "allowance")

    async def erc20_balance(self, chain_id: int, token: str, owner: str) -> int:
        result = await self.eth_call(chain_id, token, encode_balance_of(owner))
        return self._decode(result, chain_id, "balanceOf")

    async def native_balance(self, chain_id: int, owner: str) -> int:
        result = await self._rpc_call(chain_id, "eth_getBalance", [owner, "latest"])
        return self._decode(result, chain_id, "eth_getBalance")

    async def fee_history(self, chain_id: int) -> Dict[str, Any]:
        history = await self._rpc_call(chain_id, "eth_feeHistory", [1, "latest", [50]])
        if not isinstance(history, dict):
            raise UpstreamUnavailable("eth_feeHistory returned no data", provider="rpc")
        return history

    async def base_fee(self, chain_id: int) -> int:
        """Base fee of the pending block (last entry of ``baseFeePerGas``)."""
        history = await self.fee_history(chain_id)
        base_fees = history.get("baseFeePerGas") or []
        if not base_fees:
            raise UpstreamUnavailable("eth_feeHistory returned no base fee", provider="rpc")
        try:
            return int(base_fees[-1], 16)
        except (TypeError, ValueError) as exc:
            raise UpstreamUnavailable(
                "eth_feeHistory returned a malformed base fee",
                provider="rpc",
                details={"chain_id": chain_id, "result": str(base_fees[-1])[:80]},
            ) from exc

    @staticmethod
    def _decode(result: Any, chain_id: int, method: str) -> int:
        try:
            return decode_uint256(result)
        except ValueError as exc:
            raise UpstreamUnavailable(
                f"Unexpected {method} result",
                provider="rpc",
                details={"chain_id": chain_id, "result": str(result)[:80]},
            ) from exc


__all__ = ["ChainReader"]
