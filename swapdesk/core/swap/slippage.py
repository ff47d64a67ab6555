"""Slippage tolerance with an explicit unit."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..errors import ValidationError

logger = logging.getLogger(__name__)

PERCENT = 'percent'
FRACTION = 'fraction'
SLIPPAGE_UNITS = (PERCENT, FRACTION)

_HUNDRED = Decimal('100')


@dataclass(frozen=True)
class Slippage:
    """Tolerance stored as a fraction: ``0.005`` means 0.5%."""

    fraction: Decimal

    def __post_init__(self) -> None:
        if not self.fraction.is_finite() or not Decimal('0') < self.fraction < Decimal('1'):
            raise ValidationError(
                'Slippage must be greater than 0% and less than 100%',
                details={'slippage_fraction': str(self.fraction)},
            )

    @classmethod
    def from_percent(cls, value: Any) -> 'Slippage':
        return cls(_to_decimal(value) / _HUNDRED)

    @classmethod
    def from_fraction(cls, value: Any) -> 'Slippage':
        return cls(_to_decimal(value))

    @classmethod
    def parse(cls, value: Any, unit: Optional[str]) -> 'Slippage':
        """
        Build from a value whose unit is stated by the caller.

        ``unit=None`` is only for legacy tool arguments: values above 1 are
        read as percentages, values below 1 as fractions, and exactly 1 is
        rejected because it could mean 1% or 100%.
        """
        if unit == PERCENT:
            return cls.from_percent(value)
        if unit == FRACTION:
            return cls.from_fraction(value)
        if unit is not None:
            raise ValidationError(
                f'Unknown slippage unit: {unit!r}',
                details={'allowed_units': list(SLIPPAGE_UNITS)},
            )

        number = _to_decimal(value)
        if number == 1:
            raise ValidationError(
                'Slippage value 1 is ambiguous (1% or 100%); pass slippage_unit explicitly',
                details={'slippage': str(value)},
            )
        if number > 1:
            logger.warning('Slippage %s given without unit; treating it as a percentage', value)
            return cls.from_percent(number)
        logger.warning('Slippage %s given without unit; treating it as a fraction', value)
        return cls.from_fraction(number)

    @property
    def percent(self) -> Decimal:
        return self.fraction * _HUNDRED

    def as_aggregator_param(self) -> str:
        """OKX v5 expects the fraction as a plain decimal string ("0.005")."""
        text = format(self.fraction.normalize(), 'f')
        return text

    def min_output(self, amount_base: int) -> int:
        """Floor of ``amount × (1 − fraction)``."""
        numerator, denominator = (Decimal('1') - self.fraction).as_integer_ratio()
        return (amount_base * numerator) // denominator

    def __str__(self) -> str:
        percent = format(self.percent.normalize(), 'f')
        return f'{percent}%'


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValidationError(f'Invalid slippage: {value!r}')
    try:
        return value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid slippage: {value!r}')


__all__ = ['Slippage', 'PERCENT', 'FRACTION', 'SLIPPAGE_UNITS']
