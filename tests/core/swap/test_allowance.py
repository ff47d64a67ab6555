"""
Tests for allowance reads and approval building.
"""

from decimal import Decimal

import pytest
from eth_utils import to_checksum_address

from swapdesk.core.errors import UnsupportedChain
from swapdesk.core.execution.calldata import MAX_UINT256, decode_approve
from swapdesk.core.gas.policy import GasPolicy
from swapdesk.core.swap.allowance import AllowanceManager, ApprovalMode, ApprovalPolicy
from swapdesk.core.tokens import ZERO_ADDRESS, default_registry

OWNER = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"
ROUTER = "0x40aA958dd87FC8305b97f2BA922CDdCa374bcD7f"
OTHER_ROUTER = "0x1231DEB6f5749EF6cE6943a275A1D3E7486F4EaE"
USDC = default_registry.resolve(43114, "USDC")
AVAX = default_registry.resolve(43114, "AVAX")


class FakeChainReader:
    """In-memory allowances keyed by (token, owner, spender), lower-cased."""

    def __init__(self, allowances=None):
        self.allowances = {tuple(k.lower() for k in key): v for key, v in (allowances or {}).items()}
        self.reads = []

    async def erc20_allowance(self, chain_id, token, owner, spender):
        self.reads.append((chain_id, token, owner, spender))
        return self.allowances.get((token.lower(), owner.lower(), spender.lower()), 0)

    def approve(self, token, owner, spender, amount):
        self.allowances[(token.lower(), owner.lower(), spender.lower())] = amount


def _manager(reader, policy=None):
    return AllowanceManager(reader, GasPolicy(), routers={43114: ROUTER}, policy=policy)


class TestApprovalPolicy:
    def test_exact_with_margin(self):
        assert ApprovalPolicy().approval_amount(100_000_000) == 120_000_000

    def test_margin_floors(self):
        assert ApprovalPolicy(margin_percent=Decimal("10")).approval_amount(15) == 16

    def test_unlimited(self):
        assert ApprovalPolicy(mode=ApprovalMode.UNLIMITED).approval_amount(1) == MAX_UINT256

    def test_never_exceeds_uint256(self):
        assert ApprovalPolicy().approval_amount(MAX_UINT256) == MAX_UINT256

    def test_negative_margin_rejected(self):
        with pytest.raises(ValueError):
            ApprovalPolicy(margin_percent=Decimal("-1"))


class TestSpender:
    def test_static_router(self):
        assert _manager(FakeChainReader()).resolve_spender(43114) == to_checksum_address(ROUTER)

    def test_valid_hint_wins(self):
        assert _manager(FakeChainReader()).resolve_spender(43114, OTHER_ROUTER.lower()) == to_checksum_address(OTHER_ROUTER)

    @pytest.mark.parametrize("hint", ["garbage", ZERO_ADDRESS])
    def test_bad_hint_falls_back(self, hint):
        assert _manager(FakeChainReader()).resolve_spender(43114, hint) == to_checksum_address(ROUTER)

    def test_unconfigured_chain(self):
        with pytest.raises(UnsupportedChain):
            _manager(FakeChainReader()).resolve_spender(1)


class TestEnsureAllowance:
    @pytest.mark.asyncio
    async def test_sufficient_allowance_needs_nothing(self):
        reader = FakeChainReader({(USDC.address, OWNER, ROUTER): 5_000_000})
        check = await _manager(reader).ensure_allowance(43114, USDC, OWNER, 5_000_000)

        assert check.needs_approval is False
        assert check.transaction is None
        assert check.status.is_approved is True

    @pytest.mark.asyncio
    async def test_short_allowance_builds_exact_approval(self):
        reader = FakeChainReader({(USDC.address, OWNER, ROUTER): 1})
        check = await _manager(reader).ensure_allowance(43114, USDC, OWNER, 100_000_000)

        assert check.needs_approval is True
        assert check.status.shortfall == 99_999_999
        assert check.approval_amount_base == 120_000_000
        assert check.transaction.to == USDC.address
        assert check.transaction.value == 0
        assert check.transaction.gas_limit == 50_000
        assert check.transaction.data == (
            "0x095ea7b3"
            + ROUTER[2:].lower().rjust(64, "0")
            + format(120_000_000, "064x")
        )

    @pytest.mark.asyncio
    async def test_unlimited_policy(self):
        reader = FakeChainReader()
        manager = _manager(reader, ApprovalPolicy(mode=ApprovalMode.UNLIMITED))
        check = await manager.ensure_allowance(43114, USDC, OWNER, 1_000_000)

        spender, amount = decode_approve(check.transaction.data)
        assert spender == ROUTER.lower()
        assert amount == MAX_UINT256
        assert check.policy == "unlimited"

    @pytest.mark.asyncio
    async def test_idempotent_once_approved(self):
        """A confirmed approval means the next check returns no transaction."""
        reader = FakeChainReader()
        manager = _manager(reader)

        first = await manager.ensure_allowance(43114, USDC, OWNER, 1_000_000)
        reader.approve(USDC.address, OWNER, ROUTER, first.approval_amount_base)
        second = await manager.ensure_allowance(43114, USDC, OWNER, 1_000_000)
        third = await manager.ensure_allowance(43114, USDC, OWNER, 1_000_000)

        assert first.needs_approval is True
        assert second.needs_approval is False
        assert third.needs_approval is False
        # allowance is re-read every time
        assert len(reader.reads) == 3

    @pytest.mark.asyncio
    async def test_native_token_skips_reads(self):
        reader = FakeChainReader()
        check = await _manager(reader).ensure_allowance(43114, AVAX, OWNER, 10**18)

        assert check.needs_approval is False
        assert check.status.spender_address == ZERO_ADDRESS
        assert reader.reads == []
