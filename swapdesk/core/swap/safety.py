"""Pre-trade safety checks: slippage bounds and price impact."""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from ..amounts import decimal_to_str
from ..errors import ValidationError
from ..tokens import Token
from .models import PriceImpactCheck
from .slippage import Slippage


class SafetyLimits:
    """Deployment limits for slippage and price impact, all in percent."""

    def __init__(
        self,
        *,
        min_slippage_percent: Decimal = Decimal('0.1'),
        max_slippage_percent: Decimal = Decimal('50'),
        default_slippage_percent: Decimal = Decimal('0.5'),
        low_liquidity_tokens: Iterable[str] = ('SIERRA',),
        low_liquidity_slippage_percent: Decimal = Decimal('10'),
        warning_threshold: Decimal = Decimal('3'),
        block_threshold: Decimal = Decimal('10'),
    ):
        self.min_slippage_percent = Decimal(min_slippage_percent)
        self.max_slippage_percent = Decimal(max_slippage_percent)
        self.default_slippage_percent = Decimal(default_slippage_percent)
        self.low_liquidity_tokens = frozenset(s.upper() for s in low_liquidity_tokens)
        self.low_liquidity_slippage_percent = Decimal(low_liquidity_slippage_percent)
        self.warning_threshold = Decimal(warning_threshold)
        self.block_threshold = Decimal(block_threshold)

    @classmethod
    def from_settings(cls, settings) -> 'SafetyLimits':
        return cls(
            min_slippage_percent=settings.min_slippage_percent,
            max_slippage_percent=settings.max_slippage_percent,
            default_slippage_percent=settings.default_slippage_percent,
            low_liquidity_tokens=settings.low_liquidity_tokens,
            low_liquidity_slippage_percent=settings.low_liquidity_slippage_percent,
            warning_threshold=settings.price_impact_warning_threshold,
            block_threshold=settings.price_impact_block_threshold,
        )

    def recommended_slippage(self, from_token: Token, to_token: Token) -> Slippage:
        if {from_token.symbol.upper(), to_token.symbol.upper()} & self.low_liquidity_tokens:
            return Slippage.from_percent(self.low_liquidity_slippage_percent)
        return Slippage.from_percent(self.default_slippage_percent)

    def check_slippage(self, slippage: Slippage) -> Slippage:
        percent = slippage.percent
        if percent < self.min_slippage_percent:
            raise ValidationError(
                f'Slippage too low. Minimum is {decimal_to_str(self.min_slippage_percent)}%',
                details={'slippage_percent': decimal_to_str(percent)},
            )
        if percent > self.max_slippage_percent:
            raise ValidationError(
                f'Slippage too high. Maximum is {decimal_to_str(self.max_slippage_percent)}%',
                details={'slippage_percent': decimal_to_str(percent)},
            )
        return slippage

    def check_price_impact(self, impact_percent: Optional[Decimal]) -> PriceImpactCheck:
        """Classify by magnitude; aggregators report losses as negative numbers."""
        if impact_percent is None:
            return PriceImpactCheck(level='safe', message='Price impact unavailable')

        magnitude = abs(impact_percent)
        shown = decimal_to_str(magnitude.quantize(Decimal('0.01')))
        if magnitude >= self.block_threshold:
            return PriceImpactCheck(
                level='danger',
                message=f'Price impact is very high ({shown}%). This trade may result in significant losses.',
                should_block=True,
                impact_percent=impact_percent,
            )
        if magnitude >= self.warning_threshold:
            return PriceImpactCheck(
                level='warning',
                message=f'Price impact is {shown}%. Consider reducing the trade size.',
                impact_percent=impact_percent,
            )
        return PriceImpactCheck(
            level='safe',
            message=f'Price impact: {shown}%',
            impact_percent=impact_percent,
        )


__all__ = ['SafetyLimits']
