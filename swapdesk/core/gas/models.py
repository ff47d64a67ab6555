"""Gas policy models."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

GWEI = 10**9


class OperationClass(str, Enum):
    """Coarse complexity bucket used to size the gas-limit margin."""
    APPROVAL = "approval"
    SIMPLE_SWAP = "simple_swap"        # one side is the native asset
    STANDARD_SWAP = "standard_swap"    # ERC-20 to ERC-20
    COMPLEX_SWAP = "complex_swap"      # unpredictable routing


class NetworkStatus(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


@dataclass(frozen=True)
class FeeRecommendation:
    """EIP-1559 fee recommendation, all values in wei."""
    base_fee_per_gas: int
    max_priority_fee_per_gas: int
    max_fee_per_gas: int
    network_status: NetworkStatus
    capped: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_fee_per_gas": str(self.base_fee_per_gas),
            "max_priority_fee_per_gas": str(self.max_priority_fee_per_gas),
            "max_fee_per_gas": str(self.max_fee_per_gas),
            "network_status": self.network_status.value,
            "base_fee_gwei": str(Decimal(self.base_fee_per_gas) / GWEI),
            "capped": self.capped,
        }


@dataclass(frozen=True)
class GasProfile:
    """Gas limit (with margin) plus optional fee-per-unit recommendation."""
    operation_class: OperationClass
    margin_multiplier: Decimal
    gas_limit: int
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    used_fallback: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_class": self.operation_class.value,
            "margin_multiplier": str(self.margin_multiplier),
            "gas_limit": str(self.gas_limit),
            "max_fee_per_gas": str(self.max_fee_per_gas) if self.max_fee_per_gas is not None else None,
            "max_priority_fee_per_gas": (
                str(self.max_priority_fee_per_gas) if self.max_priority_fee_per_gas is not None else None
            ),
            "used_fallback": self.used_fallback,
        }
