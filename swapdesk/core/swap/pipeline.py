"""
Swap Pipeline

Orchestrates quote, approval, build and settlement for one request at a
time. Every collaborator is passed in; the pipeline keeps no state between
calls.
"""

from __future__ import annotations

import asyncio
import logging
import re
from typing import TYPE_CHECKING, Optional, Tuple

from ..amounts import AmountConverter, BaseAmount, HumanAmount, parse_base_amount
from ..errors import ValidationError
from ..settlement.models import SettlementResult
from ..tokens import Token, TokenRegistry, default_registry
from ..validation import require_wallet_address
from .allowance import AllowanceManager
from .builder import SwapTransactionBuilder
from .models import ApprovalCheck, Quote, QuoteRequest, QuoteResult, SwapPlan
from .quotes import QuoteResolver
from .safety import SafetyLimits
from .slippage import Slippage

if TYPE_CHECKING:
    from ...config import Settings
    from ...providers.base import AggregatorProvider, ChainStateProvider
    from ...providers.ledger import LedgerClient
    from ..settlement.notifier import SettlementNotifier

logger = logging.getLogger(__name__)

_TX_HASH_RE = re.compile(r'^0x[0-9a-fA-F]{64}$')


class SwapPipeline:
    def __init__(
        self,
        quote_resolver: QuoteResolver,
        allowance_manager: AllowanceManager,
        builder: SwapTransactionBuilder,
        notifier: "SettlementNotifier",
        registry: TokenRegistry = default_registry,
        *,
        safety: Optional[SafetyLimits] = None,
        converter: Optional[AmountConverter] = None,
    ):
        self.quote_resolver = quote_resolver
        self.allowance_manager = allowance_manager
        self.builder = builder
        self.notifier = notifier
        self.registry = registry
        self.safety = safety or SafetyLimits()
        self.converter = converter or AmountConverter()

    # ------------------------------------------------------------------
    # Input resolution (no network)
    # ------------------------------------------------------------------

    def resolve_pair(self, chain_id: int, from_token: str, to_token: str) -> Tuple[Token, Token]:
        source = self.registry.resolve(chain_id, from_token)
        target = self.registry.resolve(chain_id, to_token)
        if source == target:
            raise ValidationError('Cannot swap a token for itself', details={'token': source.symbol})
        return source, target

    def resolve_slippage(self, slippage: Optional[Slippage], source: Token, target: Token) -> Slippage:
        if slippage is None:
            slippage = self.safety.recommended_slippage(source, target)
        return self.safety.check_slippage(slippage)

    def _amount_base(
        self,
        token: Token,
        amount: Optional[HumanAmount],
        amount_base: Optional[BaseAmount],
    ) -> int:
        if amount_base is not None:
            value = parse_base_amount(amount_base)
        elif amount is not None:
            value = self.converter.to_base_units(amount, token.decimals)
        else:
            raise ValidationError('Amount is required')
        if value <= 0:
            raise ValidationError(
                f'Amount is too small for {token.symbol} ({token.decimals} decimals)',
                details={'amount': str(amount if amount is not None else amount_base)},
            )
        return value

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def quote(
        self,
        chain_id: int,
        from_token: str,
        to_token: str,
        amount: Optional[HumanAmount] = None,
        slippage: Optional[Slippage] = None,
        *,
        amount_base: Optional[BaseAmount] = None,
    ) -> QuoteResult:
        source, target = self.resolve_pair(chain_id, from_token, to_token)
        checked = self.resolve_slippage(slippage, source, target)
        request = QuoteRequest(
            chain_id=chain_id,
            from_token=source,
            to_token=target,
            amount_base=self._amount_base(source, amount, amount_base),
            slippage=checked,
        )
        quote = await self.quote_resolver.resolve(request)
        return QuoteResult(
            quote=quote,
            price_impact=self.safety.check_price_impact(quote.price_impact_percent),
            slippage=checked,
            recommended_slippage=self.safety.recommended_slippage(source, target),
        )

    async def check_approval(
        self,
        chain_id: int,
        token: str,
        amount_base: BaseAmount,
        owner: str,
        router_hint: Optional[str] = None,
    ) -> ApprovalCheck:
        """``router_hint`` is the ``router_address`` of an earlier quote, if any."""
        owner = require_wallet_address(owner)
        resolved = self.registry.resolve(chain_id, token)
        required = self._amount_base(resolved, None, amount_base)
        return await self.allowance_manager.ensure_allowance(
            chain_id, resolved, owner, required, router_hint
        )

    async def build(
        self,
        chain_id: int,
        from_token: str,
        to_token: str,
        owner: str,
        amount: Optional[HumanAmount] = None,
        slippage: Optional[Slippage] = None,
        *,
        amount_base: Optional[BaseAmount] = None,
        allow_high_impact: bool = False,
    ) -> SwapPlan:
        owner = require_wallet_address(owner)
        source, target = self.resolve_pair(chain_id, from_token, to_token)
        checked = self.resolve_slippage(slippage, source, target)
        request = QuoteRequest(
            chain_id=chain_id,
            from_token=source,
            to_token=target,
            amount_base=self._amount_base(source, amount, amount_base),
            slippage=checked,
        )

        result = await self.builder.build(request, owner)

        impact = self.safety.check_price_impact(result.quote.price_impact_percent)
        if impact.should_block and not allow_high_impact:
            raise ValidationError(
                impact.message,
                details={'price_impact_percent': str(impact.impact_percent), 'level': impact.level},
                suggested_action='Reduce the trade size or confirm the high-impact trade explicitly',
            )

        warnings = list(result.warnings)
        if impact.level != 'safe':
            warnings.append(impact.message)

        approval_tx = None
        if result.needs_approval:
            # same spender the builder read the allowance against
            approval_tx, _ = self.allowance_manager.build_approval(
                chain_id, source, result.spender_address, request.amount_base
            )

        return SwapPlan(
            quote=result.quote,
            transaction=result.transaction,
            needs_approval=result.needs_approval,
            approval_transaction=approval_tx,
            price_impact=impact,
            slippage=checked,
            gas_profile=result.gas_profile,
            warnings=warnings,
        )

    async def settle(
        self,
        chain_id: int,
        wallet_address: str,
        from_token: str,
        to_token: str,
        from_amount_base: BaseAmount,
        to_amount_base: BaseAmount,
        tx_hash: str,
        slippage: Optional[Slippage] = None,
        quote: Optional[Quote] = None,
        abort: Optional[asyncio.Event] = None,
    ) -> SettlementResult:
        """Record a confirmed swap. The result always reports the trade as successful."""
        wallet = require_wallet_address(wallet_address, field='wallet_address')
        if not tx_hash or not _TX_HASH_RE.match(tx_hash):
            raise ValidationError('Invalid transaction hash', details={'field': 'tx_hash'})
        source, target = self.resolve_pair(chain_id, from_token, to_token)

        record = self.notifier.build_record(
            chain_id=chain_id,
            wallet_address=wallet,
            from_token=source,
            to_token=target,
            from_amount_base=parse_base_amount(from_amount_base),
            to_amount_base=parse_base_amount(to_amount_base),
            tx_hash=tx_hash,
            slippage=slippage,
            quote=quote,
        )
        result = await self.notifier.notify(record, abort=abort)
        if result.warning is not None:
            logger.error(
                'Settlement %s not delivered to ledger; retry out-of-band with this id',
                result.record_id,
            )
        return result


def build_swap_pipeline(
    settings: "Settings",
    *,
    aggregator: Optional["AggregatorProvider"] = None,
    chain_reader: Optional["ChainStateProvider"] = None,
    ledger: Optional["LedgerClient"] = None,
    registry: TokenRegistry = default_registry,
) -> SwapPipeline:
    """Wire a pipeline from settings; any collaborator can be swapped for a fake."""
    from ...providers.chain_rpc import ChainReader
    from ...providers.ledger import LedgerClient
    from ...providers.okx import OKXDexClient
    from ..gas.policy import GasPolicy
    from ..settlement.notifier import SettlementNotifier

    aggregator = aggregator or OKXDexClient()
    chain_reader = chain_reader or ChainReader(settings.rpc_urls)
    ledger = ledger or LedgerClient(settings.ledger_webhook_url)

    gas_policy = GasPolicy.from_settings(settings, chain_reader)
    allowance_manager = AllowanceManager.from_settings(settings, chain_reader, gas_policy)
    return SwapPipeline(
        QuoteResolver(aggregator),
        allowance_manager,
        SwapTransactionBuilder(aggregator, chain_reader, gas_policy, allowance_manager),
        SettlementNotifier.from_settings(settings, ledger, registry=registry),
        registry,
        safety=SafetyLimits.from_settings(settings),
    )


__all__ = ['SwapPipeline', 'build_swap_pipeline']
