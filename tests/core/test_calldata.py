"""
Tests for ERC-20 calldata encoding.
"""

import pytest

from swapdesk.core.execution.calldata import (
    ERC20_ALLOWANCE_SELECTOR,
    ERC20_APPROVE_SELECTOR,
    ERC20_BALANCE_OF_SELECTOR,
    MAX_UINT256,
    decode_approve,
    decode_uint256,
    encode_allowance,
    encode_approve,
    encode_balance_of,
    selector_from_signature,
)

SPENDER = "0x40aA958dd87FC8305b97f2BA922CDdCa374bcD7f"
OWNER = "0xd8dA6BF26964aF9D7eEd9e03E53415D37aA96045"


def test_selectors_match_signatures():
    assert selector_from_signature("approve(address,uint256)") == ERC20_APPROVE_SELECTOR
    assert selector_from_signature("allowance(address,address)") == ERC20_ALLOWANCE_SELECTOR
    assert selector_from_signature("balanceOf(address)") == ERC20_BALANCE_OF_SELECTOR


def test_approve_layout():
    data = encode_approve(SPENDER, 120_000_000)

    assert data == (
        "0x095ea7b3"
        + "000000000000000000000000" + SPENDER[2:].lower()
        + format(120_000_000, "064x")
    )
    assert len(data) == 2 + 8 + 64 + 64


def test_approve_max_uint():
    data = encode_approve(SPENDER, MAX_UINT256)
    assert data.endswith("f" * 64)
    assert decode_approve(data) == (SPENDER.lower(), MAX_UINT256)


def test_view_calls():
    assert encode_allowance(OWNER, SPENDER).startswith("0xdd62ed3e")
    assert len(encode_allowance(OWNER, SPENDER)) == 2 + 8 + 128
    assert encode_balance_of(OWNER) == "0x70a08231" + OWNER[2:].lower().rjust(64, "0")


def test_decode_uint256():
    assert decode_uint256("0x" + format(5_000_000, "064x")) == 5_000_000
    with pytest.raises(ValueError):
        decode_uint256("0x")


def test_rejects_bad_input():
    with pytest.raises(ValueError):
        encode_approve("0x1234", 1)
    with pytest.raises(ValueError):
        encode_approve(SPENDER, MAX_UINT256 + 1)
    with pytest.raises(ValueError):
        decode_approve("0xa9059cbb" + "0" * 128)
