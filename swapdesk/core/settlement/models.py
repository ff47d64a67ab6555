"""Settlement record and delivery outcome."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID, uuid4

from ..amounts import decimal_to_str
from ..errors import DeliveryExhausted

STATUS_SUCCESS = "SUCCESS"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _render(value: Optional[Decimal]) -> Optional[str]:
    return decimal_to_str(value) if value is not None else None


@dataclass(frozen=True)
class SettlementRecord:
    """Bookkeeping entry for one confirmed swap. Created once, never changed."""

    wallet_address: str
    token_in: str
    token_out: str
    amount_in: Decimal
    amount_out: Decimal
    tx_hash: str
    blockchain: str
    price_out_usd: Optional[Decimal] = None
    cost_basis_usd: Optional[Decimal] = None
    extra_info: Dict[str, Any] = field(default_factory=dict)
    id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=_utc_now)
    status: str = STATUS_SUCCESS
    provider: str = "okx"

    def to_payload(self) -> Dict[str, Any]:
        """Ledger JSON. Decimals go out as strings, never floats."""
        return {
            "id": str(self.id),
            "wallet_address": self.wallet_address,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount_in": _render(self.amount_in),
            "amount_out": _render(self.amount_out),
            "price_out_usd": _render(self.price_out_usd),
            "cost_basis_usd": _render(self.cost_basis_usd),
            "provider": self.provider,
            "tx_hash": self.tx_hash,
            "blockchain": self.blockchain,
            "timestamp": self.timestamp.isoformat().replace("+00:00", "Z"),
            "status": self.status,
            "extra_info": dict(self.extra_info),
        }


@dataclass(frozen=True)
class DeliveryOutcome:
    record_id: str
    delivered: bool
    attempts: int
    total_delay_seconds: float = 0.0
    error: Optional[str] = None
    abandoned: bool = False  # stopped early by cancellation or abort signal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "record_id": self.record_id,
            "delivered": self.delivered,
            "attempts": self.attempts,
            "total_delay_seconds": self.total_delay_seconds,
            "error": self.error,
            "abandoned": self.abandoned,
        }


@dataclass(frozen=True)
class SettlementResult:
    """
    What the caller sees after settlement.

    ``trade_status`` describes the on-chain swap and stays ``SUCCESS`` even
    when the ledger write failed; that failure is reported in ``warning``.
    """

    record: SettlementRecord
    outcome: DeliveryOutcome
    warning: Optional[DeliveryExhausted] = None
    trade_status: str = STATUS_SUCCESS

    @property
    def record_id(self) -> str:
        return str(self.record.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_status": self.trade_status,
            "record_id": self.record_id,
            "ledger_delivered": self.outcome.delivered,
            "delivery": self.outcome.to_dict(),
            "warning": self.warning.to_dict() if self.warning else None,
            "record": self.record.to_payload(),
        }
