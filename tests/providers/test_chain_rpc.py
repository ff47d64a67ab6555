"""
Tests for the JSON-RPC chain reader.
"""

import json

import httpx
import pytest

from swapdesk.core.errors import UnsupportedChain, UpstreamUnavailable
from swapdesk.providers.chain_rpc import ChainReader

OWNER = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
SPENDER = "0x40aA958dd87FC8305b97f2BA922CDdCa374bcD7f"
TOKEN = "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E"


def _reader(handler):
    return ChainReader(
        {43114: "https://rpc.test/avax"},
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


def _word(value):
    return "0x" + format(value, "064x")


@pytest.mark.asyncio
async def test_allowance_uses_eth_call():
    seen = []

    def handler(request):
        body = json.loads(request.content)
        seen.append(body)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": _word(123_456)})

    allowance = await _reader(handler).erc20_allowance(43114, TOKEN, OWNER, SPENDER)

    assert allowance == 123_456
    call = seen[0]
    assert call["method"] == "eth_call"
    assert call["params"][0]["to"] == TOKEN
    assert call["params"][0]["data"].startswith("0xdd62ed3e")
    assert call["params"][1] == "latest"


@pytest.mark.asyncio
async def test_balance_of():
    def handler(request):
        body = json.loads(request.content)
        assert body["params"][0]["data"].startswith("0x70a08231")
        return httpx.Response(200, json={"result": _word(42)})

    assert await _reader(handler).erc20_balance(43114, TOKEN, OWNER) == 42


@pytest.mark.asyncio
async def test_base_fee_reads_latest_entry():
    def handler(request):
        body = json.loads(request.content)
        assert body["method"] == "eth_feeHistory"
        return httpx.Response(200, json={"result": {"baseFeePerGas": ["0x3b9aca00", "0x77359400"]}})

    assert await _reader(handler).base_fee(43114) == 2_000_000_000


@pytest.mark.asyncio
async def test_rpc_error_is_upstream_failure():
    def handler(request):
        return httpx.Response(200, json={"error": {"code": -32000, "message": "execution reverted"}})

    with pytest.raises(UpstreamUnavailable) as exc_info:
        await _reader(handler).erc20_allowance(43114, TOKEN, OWNER, SPENDER)
    assert exc_info.value.details["method"] == "eth_call"


@pytest.mark.asyncio
async def test_http_error_is_upstream_failure():
    def handler(request):
        return httpx.Response(502)

    with pytest.raises(UpstreamUnavailable):
        await _reader(handler).native_balance(43114, OWNER)


@pytest.mark.asyncio
async def test_empty_result_is_upstream_failure():
    def handler(request):
        return httpx.Response(200, json={"result": "0x"})

    with pytest.raises(UpstreamUnavailable):
        await _reader(handler).erc20_balance(43114, TOKEN, OWNER)


@pytest.mark.asyncio
async def test_unknown_chain():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(UnsupportedChain):
        await _reader(handler).erc20_balance(1, TOKEN, OWNER)


@pytest.mark.asyncio
@pytest.mark.parametrize("entry", ["0x", "not-hex", None])
async def test_malformed_base_fee_is_upstream_failure(entry):
    def handler(request):
        return httpx.Response(200, json={"result": {"baseFeePerGas": [entry]}})

    with pytest.raises(UpstreamUnavailable):
        await _reader(handler).base_fee(43114)
