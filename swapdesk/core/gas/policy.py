"""
Gas Policy

Two independent layers:

* the gas *limit* gets a margin sized by operation class, because running
  out of gas reverts the transaction and the fee is not refunded;
* the fee *per unit* follows network congestion and only affects cost and
  confirmation speed.
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from typing import TYPE_CHECKING, Dict, Iterable, Mapping, Optional

from ..tokens import Token, is_native_address
from .models import GWEI, FeeRecommendation, GasProfile, NetworkStatus, OperationClass

if TYPE_CHECKING:
    from ...config import Settings
    from ...providers.chain_rpc import ChainReader

logger = logging.getLogger(__name__)

DEFAULT_MARGINS: Dict[OperationClass, Decimal] = {
    OperationClass.APPROVAL: Decimal("1.15"),
    OperationClass.SIMPLE_SWAP: Decimal("1.25"),
    OperationClass.STANDARD_SWAP: Decimal("1.35"),
    OperationClass.COMPLEX_SWAP: Decimal("1.5"),
}

DEFAULT_FALLBACK_LIMITS: Dict[OperationClass, int] = {
    OperationClass.APPROVAL: 50_000,
    OperationClass.SIMPLE_SWAP: 150_000,
    OperationClass.STANDARD_SWAP: 250_000,
    OperationClass.COMPLEX_SWAP: 400_000,
}

# Base-fee thresholds in gwei; chains without an entry use Ethereum's.
DEFAULT_CONGESTION_THRESHOLDS: Dict[int, Dict[str, Decimal]] = {
    1: {"low": Decimal("20"), "high": Decimal("80")},
    43114: {"low": Decimal("25"), "high": Decimal("100")},
}
DEFAULT_THRESHOLD_CHAIN = 1

DEFAULT_PRIORITY_FEES_GWEI: Dict[NetworkStatus, Decimal] = {
    NetworkStatus.LOW: Decimal("0.5"),
    NetworkStatus.NORMAL: Decimal("1.5"),
    NetworkStatus.HIGH: Decimal("3"),
}


def _gwei_to_wei(value: Decimal) -> int:
    return int((Decimal(value) * GWEI).to_integral_value(rounding=ROUND_DOWN))


def _keyed_by_class(values: Optional[Mapping], defaults: Dict[OperationClass, object]) -> Dict:
    merged = dict(defaults)
    for key, value in (values or {}).items():
        merged[OperationClass(key)] = value
    return merged


class GasPolicy:
    """Classifies operations and sizes gas limits and EIP-1559 fees."""

    def __init__(
        self,
        chain_reader: Optional["ChainReader"] = None,
        *,
        margins: Optional[Mapping[str, Decimal]] = None,
        fallback_limits: Optional[Mapping[str, int]] = None,
        complex_tokens: Iterable[str] = ("SIERRA",),
        congestion_thresholds_gwei: Optional[Mapping[int, Mapping[str, Decimal]]] = None,
        priority_fee_gwei: Optional[Mapping[str, Decimal]] = None,
        max_gas_price_gwei: Optional[Mapping[int, Decimal]] = None,
    ):
        self.chain_reader = chain_reader
        self.margins: Dict[OperationClass, Decimal] = {
            k: Decimal(str(v)) for k, v in _keyed_by_class(margins, DEFAULT_MARGINS).items()
        }
        self.fallback_limits: Dict[OperationClass, int] = {
            k: int(v) for k, v in _keyed_by_class(fallback_limits, DEFAULT_FALLBACK_LIMITS).items()
        }
        self.complex_tokens = frozenset(symbol.upper() for symbol in complex_tokens)
        self.congestion_thresholds = dict(DEFAULT_CONGESTION_THRESHOLDS)
        self.congestion_thresholds.update(congestion_thresholds_gwei or {})
        self.priority_fees = dict(DEFAULT_PRIORITY_FEES_GWEI)
        for key, value in (priority_fee_gwei or {}).items():
            self.priority_fees[NetworkStatus(key)] = Decimal(str(value))
        self.max_gas_price_gwei = dict(max_gas_price_gwei or {})

    @classmethod
    def from_settings(cls, settings: "Settings", chain_reader: Optional["ChainReader"] = None) -> "GasPolicy":
        return cls(
            chain_reader,
            margins=settings.gas_margins,
            fallback_limits=settings.gas_fallback_limits,
            complex_tokens=settings.complex_tokens,
            congestion_thresholds_gwei=settings.congestion_thresholds_gwei,
            priority_fee_gwei=settings.priority_fee_gwei,
            max_gas_price_gwei=settings.max_gas_price_gwei,
        )

    # ------------------------------------------------------------------
    # Gas limit
    # ------------------------------------------------------------------

    def classify(
        self,
        from_token: Optional[Token],
        to_token: Optional[Token],
        is_approval: bool = False,
    ) -> OperationClass:
        """Pure function of the pair; argument order never matters."""
        if is_approval:
            return OperationClass.APPROVAL

        pair = [t for t in (from_token, to_token) if t is not None]
        if any(t.symbol.upper() in self.complex_tokens for t in pair):
            return OperationClass.COMPLEX_SWAP
        if any(t.is_native or is_native_address(t.address) for t in pair):
            return OperationClass.SIMPLE_SWAP
        return OperationClass.STANDARD_SWAP

    def gas_limit(self, operation_class: OperationClass, estimate: Optional[int]) -> int:
        """``floor(estimate × margin)``, or the class fallback without an estimate."""
        if not estimate or estimate <= 0:
            return self.fallback_limits[operation_class]
        scaled = Decimal(int(estimate)) * self.margins[operation_class]
        return int(scaled.to_integral_value(rounding=ROUND_DOWN))

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def network_status(self, chain_id: int, base_fee_wei: int) -> NetworkStatus:
        thresholds = self.congestion_thresholds.get(
            chain_id, self.congestion_thresholds[DEFAULT_THRESHOLD_CHAIN]
        )
        base_fee_gwei = Decimal(base_fee_wei) / GWEI
        if base_fee_gwei < Decimal(str(thresholds["low"])):
            return NetworkStatus.LOW
        if base_fee_gwei > Decimal(str(thresholds["high"])):
            return NetworkStatus.HIGH
        return NetworkStatus.NORMAL

    def fees_for_base_fee(self, chain_id: int, base_fee_wei: int) -> FeeRecommendation:
        status = self.network_status(chain_id, base_fee_wei)
        priority = _gwei_to_wei(self.priority_fees[status])
        max_fee = base_fee_wei + priority
        capped = False

        cap_gwei = self.max_gas_price_gwei.get(chain_id)
        if cap_gwei is not None:
            cap = _gwei_to_wei(Decimal(str(cap_gwei)))
            if max_fee > cap:
                logger.warning(
                    "maxFeePerGas %s exceeds cap %s on chain %s; clamping", max_fee, cap, chain_id
                )
                max_fee = cap
                priority = min(priority, cap)
                capped = True

        return FeeRecommendation(
            base_fee_per_gas=base_fee_wei,
            max_priority_fee_per_gas=priority,
            max_fee_per_gas=max_fee,
            network_status=status,
            capped=capped,
        )

    async def recommend_fees(self, chain_id: int) -> FeeRecommendation:
        """Read the latest base fee and derive the fee tier."""
        if self.chain_reader is None:
            raise RuntimeError("GasPolicy has no chain reader configured")
        base_fee = await self.chain_reader.base_fee(chain_id)
        recommendation = self.fees_for_base_fee(chain_id, base_fee)
        logger.info(
            "Fee recommendation chain=%s base=%s status=%s max_fee=%s",
            chain_id,
            base_fee,
            recommendation.network_status.value,
            recommendation.max_fee_per_gas,
        )
        return recommendation

    def profile(
        self,
        operation_class: OperationClass,
        estimate: Optional[int],
        fees: Optional[FeeRecommendation] = None,
    ) -> GasProfile:
        return GasProfile(
            operation_class=operation_class,
            margin_multiplier=self.margins[operation_class],
            gas_limit=self.gas_limit(operation_class, estimate),
            max_fee_per_gas=fees.max_fee_per_gas if fees else None,
            max_priority_fee_per_gas=fees.max_priority_fee_per_gas if fees else None,
            used_fallback=not estimate or estimate <= 0,
        )


__all__ = [
    "GasPolicy",
    "DEFAULT_MARGINS",
    "DEFAULT_FALLBACK_LIMITS",
    "DEFAULT_CONGESTION_THRESHOLDS",
    "DEFAULT_PRIORITY_FEES_GWEI",
]
