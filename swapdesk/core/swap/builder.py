"""
Swap Transaction Builder

Asks the aggregator to build the swap, normalizes the response and applies
the gas policy. Chain reads around the build are advisory: the wallet and
the chain reject an invalid transaction anyway, so a failed read only logs.
The allowance is read against the spender the aggregator reported for this
route, the same spender any approval transaction will name.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, List, Optional, Tuple

from ...logging_config import short_address
from ..errors import InsufficientBalance, SwapPipelineError
from ..gas.models import FeeRecommendation
from .models import BuildResult, QuoteRequest
from .normalize import normalize_build

if TYPE_CHECKING:
    from ...providers.base import AggregatorProvider, ChainStateProvider
    from ..gas.policy import GasPolicy
    from .allowance import AllowanceManager

logger = logging.getLogger(__name__)


class SwapTransactionBuilder:
    def __init__(
        self,
        aggregator: "AggregatorProvider",
        chain_reader: "ChainStateProvider",
        gas_policy: "GasPolicy",
        allowance_manager: "AllowanceManager",
    ):
        self.aggregator = aggregator
        self.chain_reader = chain_reader
        self.gas_policy = gas_policy
        self.allowance_manager = allowance_manager

    async def _check_balance(self, request: QuoteRequest, signer: str, warnings: List[str]) -> None:
        """Raises only when the read *succeeded* and the balance is too small."""
        token = request.from_token
        if token.is_native:
            return

        try:
            balance = await self.chain_reader.erc20_balance(request.chain_id, token.address, signer)
        except SwapPipelineError as exc:
            logger.warning("Balance check failed for %s: %s", token.symbol, exc.message)
            warnings.append("Balance could not be verified before building the swap")
            return

        if balance < request.amount_base:
            raise InsufficientBalance(
                available=balance,
                required=request.amount_base,
                token=token.symbol,
                message=f"Insufficient {token.symbol} balance for this swap",
            )

    async def _check_allowance(
        self,
        request: QuoteRequest,
        signer: str,
        router_hint: Optional[str],
        warnings: List[str],
    ) -> Tuple[bool, Optional[str]]:
        """``(needs_approval, spender)`` for ERC-20 sources."""
        token = request.from_token
        if token.is_native:
            return False, None

        try:
            status = await self.allowance_manager.check(
                request.chain_id, token, signer, request.amount_base, router_hint
            )
        except SwapPipelineError as exc:
            logger.warning("Allowance check failed for %s: %s", token.symbol, exc.message)
            warnings.append("Allowance could not be verified before building the swap")
            return False, None
        return not status.is_approved, status.spender_address

    async def _fees(self, chain_id: int, warnings: List[str]) -> Optional[FeeRecommendation]:
        try:
            return await self.gas_policy.recommend_fees(chain_id)
        except SwapPipelineError as exc:
            logger.warning("Fee recommendation unavailable on chain %s: %s", chain_id, exc.message)
            warnings.append("Network fees will be set by the wallet")
            return None

    async def build(self, request: QuoteRequest, signer: str) -> BuildResult:
        warnings: List[str] = []
        await self._check_balance(request, signer, warnings)

        payload = await self.aggregator.build_swap(
            chain_id=request.chain_id,
            from_token_address=request.from_token.address,
            to_token_address=request.to_token.address,
            amount=request.amount_base,
            slippage=request.slippage.as_aggregator_param(),
            user_wallet_address=signer,
        )
        normalized = normalize_build(payload, request)

        needs_approval, spender = await self._check_allowance(
            request, signer, normalized.quote.router_address, warnings
        )

        operation_class = self.gas_policy.classify(request.from_token, request.to_token)
        fees = await self._fees(request.chain_id, warnings)
        profile = self.gas_policy.profile(operation_class, normalized.gas_estimate, fees)

        transaction = dataclasses.replace(
            normalized.transaction,
            gas_limit=profile.gas_limit,
            max_fee_per_gas=profile.max_fee_per_gas,
            max_priority_fee_per_gas=profile.max_priority_fee_per_gas,
        )

        logger.info(
            "Swap built %s->%s chain=%s signer=%s to=%s gas=%s class=%s",
            request.from_token.symbol,
            request.to_token.symbol,
            request.chain_id,
            short_address(signer),
            short_address(transaction.to),
            profile.gas_limit,
            operation_class.value,
        )
        return BuildResult(
            quote=normalized.quote,
            transaction=transaction,
            needs_approval=needs_approval,
            spender_address=spender,
            gas_profile=profile,
            warnings=warnings,
        )


__all__ = ["SwapTransactionBuilder"]
