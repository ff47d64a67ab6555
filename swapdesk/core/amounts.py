"""
Lossless conversion between human-readable token amounts and base units.

All arithmetic is done on Python integers built from the decimal digits of
the input, so results stay exact far beyond 2**53 and beyond the default
28-digit ``decimal`` context. Every base amount must fit in a uint256; the
digit count is checked before any integer is built, so inputs such as
``"1e999999999"`` are rejected without being materialised.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Union

from .errors import ValidationError
from .execution.calldata import MAX_UINT256

HumanAmount = Union[str, Decimal, int]
BaseAmount = Union[int, str]

_INTEGER_RE = re.compile(r'^\d+$')
MAX_DECIMALS = 255
MAX_BASE_DIGITS = len(str(MAX_UINT256))


def _shown(value: object) -> str:
    """Bounded rendering of user input for error messages."""
    if isinstance(value, int) and not isinstance(value, bool) and value.bit_length() > 256:
        return f'<{value.bit_length()}-bit integer>'
    text = repr(value)
    if len(text) > 40:
        return f'{text[:24]}... ({len(text)} chars)'
    return text


def _too_large(value: object) -> ValidationError:
    return ValidationError(
        'Amount exceeds the uint256 maximum',
        details={'amount': _shown(value), 'max_base_amount': str(MAX_UINT256)},
    )


def _check_decimals(decimals: int) -> int:
    try:
        value = int(decimals)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid token decimals: {decimals!r}')
    if isinstance(decimals, bool) or not 0 <= value <= MAX_DECIMALS:
        raise ValidationError(f'Token decimals out of range: {decimals!r}')
    return value


def parse_human_amount(value: HumanAmount) -> Decimal:
    """Parse a user amount into a finite, non-negative ``Decimal``."""
    if isinstance(value, bool) or isinstance(value, float):
        # floats already lost precision before reaching us
        raise ValidationError('Amounts must be given as decimal strings, not floats')
    if isinstance(value, int) and value.bit_length() > 256:
        raise _too_large(value)
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid amount: {_shown(value)}')
    if not amount.is_finite():
        raise ValidationError(f'Invalid amount: {_shown(value)}')
    if amount < 0:
        raise ValidationError('Amount must not be negative')
    return amount


def parse_base_amount(value: BaseAmount) -> int:
    """Parse a base-unit amount (int or decimal-integer string) bounded by uint256."""
    if isinstance(value, bool):
        raise ValidationError(f'Invalid base amount: {value!r}')
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and _INTEGER_RE.match(value.strip()):
        digits = value.strip().lstrip('0')
        if len(digits) > MAX_BASE_DIGITS:
            raise _too_large(value)
        amount = int(digits or '0')
    else:
        raise ValidationError(f'Invalid base amount: {_shown(value)}')
    if amount < 0:
        raise ValidationError('Amount must not be negative')
    if amount > MAX_UINT256:
        raise _too_large(value)
    return amount


class AmountConverter:
    """Stateless converter; safe to share."""

    def to_base_units(self, human_amount: HumanAmount, decimals: int) -> int:
        """
        Multiply by ``10**decimals`` and floor.

        Never rounds up, so the result never authorizes or sends more than
        the user typed: ``to_base_units("1.999999995", 6) == 1999999``.
        The scaling is done on the digit string: the integer part is kept,
        the rest truncated.
        """
        places = _check_decimals(decimals)
        amount = parse_human_amount(human_amount)
        _, digits, exponent = amount.as_tuple()
        coefficient = ''.join(str(d) for d in digits).lstrip('0')
        if not coefficient:
            return 0
        shift = int(exponent) + places
        integer_digits = len(coefficient) + shift
        if integer_digits <= 0:
            return 0
        if integer_digits > MAX_BASE_DIGITS:
            raise _too_large(human_amount)
        if shift >= 0:
            base = int(coefficient + '0' * shift)
        else:
            base = int(coefficient[:integer_digits])
        if base > MAX_UINT256:
            raise _too_large(human_amount)
        return base

    def from_base_units(self, base_amount: BaseAmount, decimals: int) -> str:
        """Format base units as a decimal string with trailing zeros stripped."""
        places = _check_decimals(decimals)
        amount = parse_base_amount(base_amount)
        if places == 0:
            return str(amount)
        whole, fraction = divmod(amount, 10 ** places)
        fraction_str = str(fraction).zfill(places).rstrip('0')
        if not fraction_str:
            return str(whole)
        return f'{whole}.{fraction_str}'

    def to_decimal(self, base_amount: BaseAmount, decimals: int) -> Decimal:
        """Exact ``Decimal`` view of a base amount (constructed from a string)."""
        return Decimal(self.from_base_units(base_amount, decimals))


_default = AmountConverter()

to_base_units = _default.to_base_units
from_base_units = _default.from_base_units
to_decimal = _default.to_decimal


def decimal_to_str(value: Decimal) -> str:
    """Human display without exponent notation or trailing zeros."""
    text = format(value, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text or '0'


__all__ = [
    'AmountConverter',
    'MAX_BASE_DIGITS',
    'to_base_units',
    'from_base_units',
    'to_decimal',
    'parse_human_amount',
    'parse_base_amount',
    'decimal_to_str',
]
