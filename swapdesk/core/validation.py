"""Address checks applied before any wallet-scoped network call."""

from __future__ import annotations

from typing import Optional

from eth_utils import is_hex_address, to_checksum_address

from .errors import ValidationError
from .tokens import NATIVE_TOKEN_ADDRESS, ZERO_ADDRESS

# Example and sentinel addresses that can never belong to a connected wallet.
PLACEHOLDER_ADDRESSES = frozenset({
    ZERO_ADDRESS,
    '0x1111111111111111111111111111111111111111',
    '0x1234567890123456789012345678901234567890',
    NATIVE_TOKEN_ADDRESS.lower(),
})


def is_valid_address(address: Optional[str]) -> bool:
    return isinstance(address, str) and address.startswith('0x') and is_hex_address(address)


def is_real_address(address: Optional[str]) -> bool:
    if not is_valid_address(address):
        return False
    return address.lower() not in PLACEHOLDER_ADDRESSES  # type: ignore[union-attr]


def require_wallet_address(address: Optional[str], *, field: str = 'user_address') -> str:
    """Return the checksummed wallet address or raise ``ValidationError``."""
    if not address:
        raise ValidationError(
            'Wallet address is required. Connect your wallet first.',
            details={'field': field},
        )
    if not is_valid_address(address):
        raise ValidationError(
            'Invalid wallet address format. Please check your wallet connection.',
            details={'field': field},
        )
    if not is_real_address(address):
        raise ValidationError(
            'Cannot use placeholder or example addresses. This transaction must use your connected wallet.',
            details={'field': field},
        )
    return to_checksum_address(address)


__all__ = [
    'PLACEHOLDER_ADDRESSES',
    'is_valid_address',
    'is_real_address',
    'require_wallet_address',
]
