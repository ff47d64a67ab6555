"""
Allowance Manager

Reads the live ERC-20 allowance for the aggregator router and, when it is
short, builds the ``approve`` transaction under a fixed approval policy.
Allowance is safety-critical and is re-read on every call.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING, Dict, Optional, Tuple

from eth_utils import to_checksum_address

from ...logging_config import short_address
from ..errors import UnsupportedChain
from ..execution.calldata import MAX_UINT256, encode_approve
from ..gas.models import OperationClass
from ..tokens import ZERO_ADDRESS, Token
from ..validation import is_valid_address
from .models import AllowanceStatus, ApprovalCheck, TransactionRequest

if TYPE_CHECKING:
    from ...config import Settings
    from ...providers.base import ChainStateProvider
    from ..gas.policy import GasPolicy

logger = logging.getLogger(__name__)


class ApprovalMode(str, Enum):
    UNLIMITED = 'unlimited'
    EXACT_WITH_MARGIN = 'exact_with_margin'


@dataclass(frozen=True)
class ApprovalPolicy:
    """
    How much to approve when the allowance is short.

    Chosen once per deployment. Mixing modes within a user session leaves
    allowances that are hard to reason about.
    """

    mode: ApprovalMode = ApprovalMode.EXACT_WITH_MARGIN
    margin_percent: Decimal = Decimal('20')

    def __post_init__(self) -> None:
        if self.margin_percent < 0:
            raise ValueError('margin_percent must not be negative')

    def approval_amount(self, required_base: int) -> int:
        if self.mode is ApprovalMode.UNLIMITED:
            return MAX_UINT256
        numerator, denominator = (Decimal(100) + self.margin_percent).as_integer_ratio()
        amount = (required_base * numerator) // (100 * denominator)
        return min(max(amount, required_base), MAX_UINT256)

    def describe(self) -> str:
        if self.mode is ApprovalMode.UNLIMITED:
            return 'unlimited: approve the maximum uint256 once per token'
        return f'exact_with_margin: approve the required amount plus {self.margin_percent}%'


class AllowanceManager:
    def __init__(
        self,
        chain_reader: "ChainStateProvider",
        gas_policy: "GasPolicy",
        *,
        routers: Dict[int, str],
        policy: Optional[ApprovalPolicy] = None,
    ):
        self.chain_reader = chain_reader
        self.gas_policy = gas_policy
        self.routers = dict(routers)
        self.policy = policy or ApprovalPolicy()

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        chain_reader: "ChainStateProvider",
        gas_policy: "GasPolicy",
    ) -> "AllowanceManager":
        policy = ApprovalPolicy(
            mode=ApprovalMode(settings.approval_strategy),
            margin_percent=Decimal(settings.approval_margin_percent),
        )
        return cls(chain_reader, gas_policy, routers=settings.okx_routers, policy=policy)

    def describe(self) -> str:
        return self.policy.describe()

    def resolve_spender(self, chain_id: int, router_hint: Optional[str] = None) -> str:
        """
        Static router for the chain, refined by a router the aggregator just
        reported. A bad hint never blocks the flow.
        """
        static = self.routers.get(chain_id)
        if not static:
            raise UnsupportedChain(chain_id, f'No router configured for chain {chain_id}')

        if router_hint:
            if is_valid_address(router_hint) and router_hint.lower() != ZERO_ADDRESS:
                return to_checksum_address(router_hint)
            logger.warning(
                'Ignoring invalid router %r from aggregator; using configured router for chain %s',
                router_hint,
                chain_id,
            )
        return to_checksum_address(static)

    async def check(
        self,
        chain_id: int,
        token: Token,
        owner: str,
        required_base: int,
        router_hint: Optional[str] = None,
    ) -> AllowanceStatus:
        if token.is_native:
            return AllowanceStatus(
                is_approved=True,
                current_allowance_base=0,
                required_allowance_base=0,
                spender_address=ZERO_ADDRESS,
            )

        spender = self.resolve_spender(chain_id, router_hint)
        current = await self.chain_reader.erc20_allowance(chain_id, token.address, owner, spender)
        status = AllowanceStatus(
            is_approved=current >= required_base,
            current_allowance_base=current,
            required_allowance_base=required_base,
            spender_address=spender,
        )
        logger.info(
            'Allowance check chain=%s token=%s owner=%s spender=%s current=%s required=%s approved=%s',
            chain_id,
            token.symbol,
            short_address(owner),
            short_address(spender),
            current,
            required_base,
            status.is_approved,
        )
        return status

    def build_approval(
        self,
        chain_id: int,
        token: Token,
        spender: str,
        required_base: int,
    ) -> Tuple[TransactionRequest, int]:
        """``approve(spender, amount)`` on the token contract."""
        amount = self.policy.approval_amount(required_base)
        gas_limit = self.gas_policy.gas_limit(OperationClass.APPROVAL, None)
        tx = TransactionRequest(
            to=token.address,
            data=encode_approve(spender, amount),
            value=0,
            gas_limit=gas_limit,
            chain_id=chain_id,
        )
        return tx, amount

    async def ensure_allowance(
        self,
        chain_id: int,
        token: Token,
        owner: str,
        required_base: int,
        router_hint: Optional[str] = None,
    ) -> ApprovalCheck:
        """Idempotent: an already sufficient allowance yields no transaction."""
        status = await self.check(chain_id, token, owner, required_base, router_hint)
        if status.is_approved:
            return ApprovalCheck(status=status, policy=self.policy.mode.value)

        tx, amount = self.build_approval(chain_id, token, status.spender_address, required_base)
        logger.info(
            'Approval required token=%s spender=%s amount=%s policy=%s',
            token.symbol,
            short_address(status.spender_address),
            amount,
            self.policy.mode.value,
        )
        return ApprovalCheck(
            status=status,
            transaction=tx,
            approval_amount_base=amount,
            policy=self.policy.mode.value,
        )


__all__ = ['AllowanceManager', 'ApprovalMode', 'ApprovalPolicy']
