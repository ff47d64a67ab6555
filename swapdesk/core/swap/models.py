"""
Swap pipeline models.

Base-unit amounts are Python ints everywhere; they are rendered as decimal
strings only when handed to a client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..amounts import decimal_to_str
from ..errors import NoQuoteAvailable
from ..gas.models import GasProfile
from ..tokens import Token
from .slippage import Slippage


@dataclass(frozen=True)
class QuoteRequest:
    """Everything the aggregator needs to price one swap."""
    chain_id: int
    from_token: Token
    to_token: Token
    amount_base: int
    slippage: Slippage


@dataclass(frozen=True)
class Quote:
    """Canonical quote. Fetched fresh per request and never mutated."""
    chain_id: int
    from_token: Token
    to_token: Token
    from_amount_base: int
    to_amount_base: int
    to_amount_min_base: int
    exchange_rate: Optional[Decimal] = None         # None = unavailable, never 0
    price_impact_percent: Optional[Decimal] = None
    estimated_gas: int = 0
    router_address: Optional[str] = None
    schema: str = ''                                # which response variant produced it

    def __post_init__(self) -> None:
        for name in ('from_amount_base', 'to_amount_base', 'to_amount_min_base', 'estimated_gas'):
            if getattr(self, name) < 0:
                raise NoQuoteAvailable(
                    'Aggregator returned a negative amount',
                    details={'field': name},
                )
        if self.to_amount_min_base > self.to_amount_base:
            raise NoQuoteAvailable(
                'Aggregator quote is inconsistent: minimum output exceeds expected output',
                details={
                    'to_amount': str(self.to_amount_base),
                    'to_amount_min': str(self.to_amount_min_base),
                },
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'chain_id': self.chain_id,
            'from_token': self.from_token.to_dict(),
            'to_token': self.to_token.to_dict(),
            'from_amount_base': str(self.from_amount_base),
            'to_amount_base': str(self.to_amount_base),
            'to_amount_min_base': str(self.to_amount_min_base),
            'exchange_rate': decimal_to_str(self.exchange_rate) if self.exchange_rate is not None else None,
            'price_impact_percent': (
                decimal_to_str(self.price_impact_percent) if self.price_impact_percent is not None else None
            ),
            'estimated_gas': str(self.estimated_gas),
            'router_address': self.router_address,
        }


@dataclass(frozen=True)
class AllowanceStatus:
    """Result of a live allowance read. Valid for the current request only."""
    is_approved: bool
    current_allowance_base: int
    required_allowance_base: int
    spender_address: str

    @property
    def shortfall(self) -> int:
        return max(self.required_allowance_base - self.current_allowance_base, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'is_approved': self.is_approved,
            'current_allowance_base': str(self.current_allowance_base),
            'required_allowance_base': str(self.required_allowance_base),
            'spender_address': self.spender_address,
        }


@dataclass(frozen=True)
class TransactionRequest:
    """Unsigned transaction descriptor handed to the wallet."""
    to: str
    data: str
    value: int = 0
    gas_limit: Optional[int] = None
    chain_id: Optional[int] = None
    max_fee_per_gas: Optional[int] = None          # EIP-1559
    max_priority_fee_per_gas: Optional[int] = None  # EIP-1559

    def to_dict(self) -> Dict[str, Any]:
        """Wallet-ready dict; quantities rendered as hex."""
        tx: Dict[str, Any] = {
            'to': self.to,
            'data': self.data,
            'value': hex(self.value),
        }
        if self.gas_limit is not None:
            tx['gas'] = hex(self.gas_limit)
        if self.chain_id is not None:
            tx['chainId'] = hex(self.chain_id)
        if self.max_fee_per_gas is not None:
            tx['maxFeePerGas'] = hex(self.max_fee_per_gas)
            tx['maxPriorityFeePerGas'] = hex(self.max_priority_fee_per_gas or 0)
        return tx


@dataclass(frozen=True)
class ApprovalCheck:
    """Allowance status plus the approval to sign, if one is needed."""
    status: AllowanceStatus
    transaction: Optional[TransactionRequest] = None
    approval_amount_base: Optional[int] = None
    policy: Optional[str] = None

    @property
    def needs_approval(self) -> bool:
        return self.transaction is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'needs_approval': self.needs_approval,
            'allowance': self.status.to_dict(),
            'approval_transaction': self.transaction.to_dict() if self.transaction else None,
            'approval_amount_base': (
                str(self.approval_amount_base) if self.approval_amount_base is not None else None
            ),
            'policy': self.policy,
        }


@dataclass(frozen=True)
class PriceImpactCheck:
    level: str                      # safe | warning | danger
    message: str
    should_block: bool = False
    impact_percent: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'level': self.level,
            'message': self.message,
            'should_block': self.should_block,
            'impact_percent': (
                decimal_to_str(self.impact_percent) if self.impact_percent is not None else None
            ),
        }


@dataclass(frozen=True)
class BuildResult:
    """Output of the transaction builder, before approval handling."""
    quote: Quote
    transaction: TransactionRequest
    needs_approval: bool = False
    spender_address: Optional[str] = None
    gas_profile: Optional[GasProfile] = None
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SwapPlan:
    """Everything the signer needs: optional approval first, then the swap."""
    quote: Quote
    transaction: TransactionRequest
    needs_approval: bool
    approval_transaction: Optional[TransactionRequest] = None
    price_impact: Optional[PriceImpactCheck] = None
    slippage: Optional[Slippage] = None
    gas_profile: Optional[GasProfile] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quote': self.quote.to_dict(),
            'transaction': self.transaction.to_dict(),
            'needs_approval': self.needs_approval,
            'approval_transaction': (
                self.approval_transaction.to_dict() if self.approval_transaction else None
            ),
            'price_impact': self.price_impact.to_dict() if self.price_impact else None,
            'slippage_percent': decimal_to_str(self.slippage.percent) if self.slippage else None,
            'gas': self.gas_profile.to_dict() if self.gas_profile else None,
            'warnings': list(self.warnings),
        }


@dataclass(frozen=True)
class QuoteResult:
    """Display quote with its safety assessment."""
    quote: Quote
    price_impact: PriceImpactCheck
    slippage: Slippage
    recommended_slippage: Optional[Slippage] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'quote': self.quote.to_dict(),
            'price_impact': self.price_impact.to_dict(),
            'slippage_percent': decimal_to_str(self.slippage.percent),
            'recommended_slippage_percent': (
                decimal_to_str(self.recommended_slippage.percent) if self.recommended_slippage else None
            ),
        }
