"""
Tests for intent tool dispatch.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from swapdesk.core.errors import NoQuoteAvailable
from swapdesk.core.tokens import default_registry
from swapdesk.tools.dispatch import ToolCall, ToolExecutor, ToolRegistry, WalletContext

WALLET = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def _result(payload):
    result = MagicMock()
    result.to_dict.return_value = payload
    return result


@pytest.fixture
def pipeline():
    mock = MagicMock()
    mock.registry = default_registry
    mock.quote = AsyncMock(return_value=_result({"quote": {}}))
    mock.build = AsyncMock(return_value=_result({"transaction": {}}))
    mock.check_approval = AsyncMock(return_value=_result({"needs_approval": False}))
    mock.settle = AsyncMock(return_value=_result({"trade_status": "SUCCESS"}))
    return mock


@pytest.fixture
def executor(pipeline):
    return ToolExecutor(ToolRegistry(pipeline))


class TestDefinitions:
    def test_registers_swap_tools(self, executor):
        names = {d.name for d in executor.registry.get_definitions()}
        assert names == {"get_swap_quote", "swap_tokens", "check_token_approval", "confirm_swap"}

    def test_schema_lists_required_params(self, executor):
        schema = executor.registry.get_tool("get_swap_quote").definition.to_schema()
        assert schema["input_schema"]["required"] == ["from_token", "to_token", "amount"]
        assert schema["input_schema"]["properties"]["slippage_unit"]["enum"] == ["percent", "fraction"]


class TestExecute:
    @pytest.mark.asyncio
    async def test_quote_uses_wallet_chain(self, executor, pipeline):
        call = ToolCall(
            name="get_swap_quote",
            args={"from_token": "USDC", "to_token": "AVAX", "amount": 5},
            wallet_context=WalletContext(chain_id=43114),
        )

        result = await executor.execute(call)

        assert result.success is True
        assert result.tool_call_id == call.id
        args = pipeline.quote.await_args.args
        assert args[:4] == (43114, "USDC", "AVAX", "5")
        assert args[4] is None

    @pytest.mark.asyncio
    async def test_chain_alias_and_legacy_percent(self, executor, pipeline):
        call = ToolCall(
            name="get_swap_quote",
            args={"from_token": "USDC", "to_token": "AVAX", "amount": "1", "chain": "avalanche", "slippage": 3},
        )

        await executor.execute(call)

        args = pipeline.quote.await_args.args
        assert args[0] == 43114
        assert args[4].fraction == Decimal("0.03")

    @pytest.mark.asyncio
    async def test_ambiguous_slippage_is_rejected(self, executor, pipeline):
        call = ToolCall(
            name="get_swap_quote",
            args={"from_token": "USDC", "to_token": "AVAX", "amount": "1", "chain_id": 43114, "slippage": 1},
        )

        result = await executor.execute(call)

        assert result.success is False
        assert result.code == "validation"
        pipeline.quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_explicit_unit_accepts_one(self, executor, pipeline):
        call = ToolCall(
            name="get_swap_quote",
            args={
                "from_token": "USDC",
                "to_token": "AVAX",
                "amount": "1",
                "chain_id": 43114,
                "slippage": 1,
                "slippage_unit": "percent",
            },
        )

        result = await executor.execute(call)

        assert result.success is True
        assert pipeline.quote.await_args.args[4].fraction == Decimal("0.01")

    @pytest.mark.asyncio
    async def test_swap_requires_wallet(self, executor, pipeline):
        call = ToolCall(name="swap_tokens", args={"from_token": "USDC", "to_token": "AVAX", "amount": "1"})

        result = await executor.execute(call)

        assert result.success is False
        assert "Connect your wallet" in result.error
        pipeline.build.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_swap_passes_wallet(self, executor, pipeline):
        call = ToolCall(
            name="swap_tokens",
            args={"from_token": "USDC", "to_token": "AVAX", "amount": "1", "allow_high_impact": True},
            wallet_context=WalletContext(address=WALLET, chain_id=43114),
        )

        result = await executor.execute(call)

        assert result.success is True
        assert pipeline.build.await_args.args[3] == WALLET
        assert pipeline.build.await_args.kwargs["allow_high_impact"] is True

    @pytest.mark.asyncio
    async def test_approval_converts_human_amount(self, executor, pipeline):
        call = ToolCall(
            name="check_token_approval",
            args={"token": "USDC", "amount": "2.5"},
            wallet_context=WalletContext(address=WALLET, chain_id=43114),
        )

        await executor.execute(call)

        assert pipeline.check_approval.await_args.args == (43114, "USDC", 2_500_000, WALLET)

    @pytest.mark.asyncio
    async def test_pipeline_errors_become_failed_results(self, executor, pipeline):
        pipeline.quote.side_effect = NoQuoteAvailable(upstream_code="82000")
        call = ToolCall(
            name="get_swap_quote",
            args={"from_token": "USDC", "to_token": "AVAX", "amount": "1", "chain_id": 43114},
        )

        result = await executor.execute(call)

        assert result.success is False
        assert result.code == "no_quote_available"
        assert result.details["upstream_code"] == "82000"

    @pytest.mark.asyncio
    async def test_unknown_tool(self, executor):
        result = await executor.execute(ToolCall(name="bridge_tokens"))
        assert result.code == "unknown_tool"

    @pytest.mark.asyncio
    async def test_missing_arguments(self, executor):
        call = ToolCall(
            name="confirm_swap",
            args={"tx_hash": "0x" + "00" * 32},
            wallet_context=WalletContext(address=WALLET, chain_id=43114),
        )

        result = await executor.execute(call)

        assert result.success is False
        assert "from_token" in result.error
