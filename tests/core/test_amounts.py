"""
Tests for human/base-unit amount conversion.
"""

from decimal import Decimal

import pytest

from swapdesk.core.amounts import (
    AmountConverter,
    decimal_to_str,
    from_base_units,
    parse_base_amount,
    to_base_units,
)
from swapdesk.core.errors import ValidationError


class TestToBaseUnits:
    """Human amount to integer base units."""

    def test_whole_amount(self):
        assert to_base_units("1", 18) == 10**18

    def test_floors_extra_precision(self):
        """Never rounds up past what the user typed."""
        assert to_base_units("1.999999995", 6) == 1999999

    def test_fraction_below_one_unit_is_zero(self):
        assert to_base_units("0.0000001", 6) == 0

    def test_exact_beyond_float_precision(self):
        amount = "123456789012345678.123456789012345678"
        assert to_base_units(amount, 18) == 123456789012345678123456789012345678

    def test_accepts_decimal_and_int(self):
        assert to_base_units(Decimal("2.5"), 6) == 2_500_000
        assert to_base_units(3, 0) == 3

    def test_scientific_notation(self):
        assert to_base_units("1e-6", 6) == 1

    @pytest.mark.parametrize("bad", ["abc", "", "NaN", "Infinity", "-1"])
    def test_rejects_invalid_input(self, bad):
        with pytest.raises(ValidationError):
            to_base_units(bad, 6)

    def test_rejects_float(self):
        with pytest.raises(ValidationError):
            to_base_units(0.1, 18)

    def test_rejects_out_of_range_decimals(self):
        with pytest.raises(ValidationError):
            to_base_units("1", 256)


class TestFromBaseUnits:
    """Base units back to a display string."""

    def test_strips_trailing_zeros(self):
        assert from_base_units(1_500_000, 6) == "1.5"

    def test_whole_number(self):
        assert from_base_units(2 * 10**18, 18) == "2"

    def test_small_value_keeps_leading_zeros(self):
        assert from_base_units(1, 6) == "0.000001"

    def test_zero_decimals(self):
        assert from_base_units("42", 0) == "42"

    def test_round_trip_at_full_precision(self):
        converter = AmountConverter()
        human = "0.123456789012345678"
        assert converter.from_base_units(converter.to_base_units(human, 18), 18) == human

    def test_to_decimal_is_exact(self):
        converter = AmountConverter()
        assert converter.to_decimal(1_999_999, 6) == Decimal("1.999999")


class TestParseBaseAmount:
    def test_int_and_digit_string(self):
        assert parse_base_amount(10) == 10
        assert parse_base_amount(" 1000 ") == 1000

    @pytest.mark.parametrize("bad", ["1.5", "0x10", "-5", True, None])
    def test_rejects_non_integers(self, bad):
        with pytest.raises(ValidationError):
            parse_base_amount(bad)


def test_decimal_to_str_has_no_exponent():
    assert decimal_to_str(Decimal("1E-7")) == "0.0000001"
    assert decimal_to_str(Decimal("2000.000")) == "2000"


class TestUint256Bound:
    """Base amounts are capped at the largest uint256 an approval can encode."""

    MAX_UINT256 = 2**256 - 1

    def test_max_uint256_is_accepted(self):
        assert parse_base_amount(str(self.MAX_UINT256)) == self.MAX_UINT256
        assert parse_base_amount(self.MAX_UINT256) == self.MAX_UINT256

    def test_leading_zeros_do_not_count_toward_the_limit(self):
        assert parse_base_amount("0" * 200 + "7") == 7

    @pytest.mark.parametrize("value", [str(2**256), 2**256, "9" * 5000])
    def test_rejects_base_amount_above_uint256(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_base_amount(value)
        assert exc_info.value.details["max_base_amount"] == str(self.MAX_UINT256)

    def test_rejects_human_amount_above_uint256(self):
        with pytest.raises(ValidationError):
            to_base_units(str(2**256), 0)

    @pytest.mark.parametrize("value", ["1e5000", "1e999999999", "9" * 5000])
    def test_huge_human_amounts_fail_fast(self, value):
        with pytest.raises(ValidationError):
            to_base_units(value, 18)

    def test_tiny_exponent_floors_to_zero(self):
        assert to_base_units("1e-999999999", 18) == 0

    def test_long_fraction_is_truncated(self):
        assert to_base_units("1." + "9" * 5000, 6) == 1_999_999

    def test_largest_human_amount_for_decimals(self):
        top = from_base_units(self.MAX_UINT256, 18)
        assert to_base_units(top, 18) == self.MAX_UINT256
