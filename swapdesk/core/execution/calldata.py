"""
ERC-20 calldata encoding and decoding.

Only the handful of calls the swap pipeline needs: ``approve`` (write),
``allowance`` and ``balanceOf`` (views).
"""

from __future__ import annotations

from eth_utils import keccak

ERC20_APPROVE_SELECTOR = "0x095ea7b3"  # approve(address,uint256)
ERC20_ALLOWANCE_SELECTOR = "0xdd62ed3e"  # allowance(address,address)
ERC20_BALANCE_OF_SELECTOR = "0x70a08231"  # balanceOf(address)

MAX_UINT256 = 2**256 - 1


def _strip_0x(value: str) -> str:
    return value[2:] if value.startswith(("0x", "0X")) else value


def encode_uint256(value: int) -> str:
    """Encode a uint256 as a 32-byte hex word (without 0x prefix)."""
    if value < 0:
        raise ValueError("Value must be non-negative")
    if value > MAX_UINT256:
        raise ValueError("Value does not fit in uint256")
    return format(value, "064x")


def encode_address(address: str) -> str:
    """Encode an address as a left-padded 32-byte hex word (without 0x prefix)."""
    addr = _strip_0x(address).lower()
    if len(addr) != 40:
        raise ValueError(f"Invalid address length: {address}")
    int(addr, 16)  # rejects non-hex characters
    return addr.rjust(64, "0")


def selector_from_signature(signature: str) -> str:
    return "0x" + keccak(text=signature)[:4].hex()


def encode_approve(spender: str, amount: int) -> str:
    """``approve(spender, amount)``: selector + padded spender + padded amount."""
    return ERC20_APPROVE_SELECTOR + encode_address(spender) + encode_uint256(amount)


def encode_allowance(owner: str, spender: str) -> str:
    return ERC20_ALLOWANCE_SELECTOR + encode_address(owner) + encode_address(spender)


def encode_balance_of(owner: str) -> str:
    return ERC20_BALANCE_OF_SELECTOR + encode_address(owner)


def decode_uint256(result: str) -> int:
    """Decode the first word of an ``eth_call`` result."""
    if not isinstance(result, str):
        raise ValueError(f"Unexpected eth_call result: {result!r}")
    hex_data = _strip_0x(result)
    if not hex_data:
        raise ValueError("Empty eth_call result")
    return int(hex_data[:64], 16)


def decode_approve(data: str) -> tuple[str, int]:
    """Split approve calldata back into ``(spender, amount)``."""
    if not data.lower().startswith(ERC20_APPROVE_SELECTOR):
        raise ValueError("Not approve() calldata")
    body = _strip_0x(data)[8:]
    if len(body) != 128:
        raise ValueError("approve() calldata must carry exactly two words")
    spender = "0x" + body[24:64]
    amount = int(body[64:128], 16)
    return spender, amount


__all__ = [
    "ERC20_APPROVE_SELECTOR",
    "ERC20_ALLOWANCE_SELECTOR",
    "ERC20_BALANCE_OF_SELECTOR",
    "MAX_UINT256",
    "encode_uint256",
    "encode_address",
    "encode_approve",
    "encode_allowance",
    "encode_balance_of",
    "decode_uint256",
    "decode_approve",
    "selector_from_signature",
]
