"""
Settlement Notifier

Builds the settlement record for a confirmed swap and delivers it to the
ledger webhook with at-least-once semantics. Delivery is sequential inside
the caller's task: attempt, sleep, attempt again, bounded by
:class:`~swapdesk.core.retry.BackoffPolicy`.
"""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal
from typing import TYPE_CHECKING, Optional

import httpx

from ...logging_config import short_address
from ..amounts import AmountConverter, decimal_to_str
from ..errors import DeliveryExhausted
from ..retry import BackoffPolicy, Sleeper, default_sleep
from ..swap.models import Quote
from ..swap.slippage import Slippage
from ..tokens import Token, TokenRegistry, blockchain_label, default_registry
from .models import DeliveryOutcome, SettlementRecord, SettlementResult

if TYPE_CHECKING:
    from ...config import Settings
    from ...providers.ledger import LedgerClient

logger = logging.getLogger(__name__)


class SettlementNotifier:
    """Turns a confirmed swap into a ledger record and delivers it."""

    def __init__(
        self,
        ledger: "LedgerClient",
        *,
        registry: TokenRegistry = default_registry,
        backoff: Optional[BackoffPolicy] = None,
        sleep: Sleeper = default_sleep,
        converter: Optional[AmountConverter] = None,
    ):
        self.ledger = ledger
        self.registry = registry
        self.backoff = backoff or BackoffPolicy(
            max_attempts=3,
            initial_delay_seconds=2.0,
            max_delay_seconds=30.0,
        )
        self._sleep = sleep
        self.converter = converter or AmountConverter()

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        ledger: "LedgerClient",
        *,
        registry: TokenRegistry = default_registry,
        sleep: Sleeper = default_sleep,
    ) -> "SettlementNotifier":
        backoff = BackoffPolicy(
            max_attempts=settings.ledger_max_attempts,
            initial_delay_seconds=settings.ledger_base_delay_seconds,
            max_delay_seconds=settings.ledger_max_delay_seconds,
        )
        return cls(ledger, registry=registry, backoff=backoff, sleep=sleep)

    # ------------------------------------------------------------------
    # Record building
    # ------------------------------------------------------------------

    def price_out_usd(
        self,
        chain_id: int,
        from_token: Token,
        to_token: Token,
        amount_in: Decimal,
        amount_out: Decimal,
    ) -> Optional[Decimal]:
        """
        USD price of the output token, only when one side is the stable
        reference. Returns ``None`` rather than guessing.
        """
        if amount_out == 0:
            logger.warning("Cannot price settlement: output amount is zero")
            return None

        stable = self.registry.stable_reference(chain_id)
        if stable is None:
            return None
        if stable.matches(from_token.address):
            return amount_in / amount_out
        if stable.matches(to_token.address):
            return Decimal(1)
        return None

    def build_record(
        self,
        *,
        chain_id: int,
        wallet_address: str,
        from_token: Token,
        to_token: Token,
        from_amount_base: int,
        to_amount_base: int,
        tx_hash: str,
        slippage: Optional[Slippage] = None,
        quote: Optional[Quote] = None,
    ) -> SettlementRecord:
        amount_in = self.converter.to_decimal(from_amount_base, from_token.decimals)
        amount_out = self.converter.to_decimal(to_amount_base, to_token.decimals)

        price = self.price_out_usd(chain_id, from_token, to_token, amount_in, amount_out)
        cost_basis = amount_out * price if price is not None else None

        extra_info = {
            "slippage": decimal_to_str(slippage.percent) if slippage else None,
            "estimated_gas": str(quote.estimated_gas) if quote else None,
            "price_impact": (
                decimal_to_str(quote.price_impact_percent)
                if quote and quote.price_impact_percent is not None
                else None
            ),
            "exchange_rate": (
                decimal_to_str(quote.exchange_rate)
                if quote and quote.exchange_rate is not None
                else None
            ),
            "token_in_symbol": from_token.symbol,
            "token_out_symbol": to_token.symbol,
        }

        record = SettlementRecord(
            wallet_address=wallet_address,
            token_in=from_token.address,
            token_out=to_token.address,
            amount_in=amount_in,
            amount_out=amount_out,
            tx_hash=tx_hash,
            blockchain=blockchain_label(chain_id),
            price_out_usd=price,
            cost_basis_usd=cost_basis,
            extra_info=extra_info,
        )
        logger.info(
            "Settlement record built id=%s %s->%s wallet=%s tx=%s",
            record.id,
            from_token.symbol,
            to_token.symbol,
            short_address(wallet_address),
            short_address(tx_hash),
        )
        return record

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def _post_shielded(self, payload: dict) -> httpx.Response:
        """
        Send one POST that survives cancellation of the caller.

        If the caller is cancelled mid-request, the round trip is allowed to
        finish before the cancellation propagates, so no write is cut in half.
        """
        task = asyncio.ensure_future(self.ledger.post_record(payload))
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            logger.warning("Settlement delivery cancelled; finishing in-flight request first")
            try:
                await task
            except httpx.HTTPError as exc:
                logger.warning("In-flight ledger request failed after cancellation: %s", exc)
            raise

    async def deliver(
        self,
        record: SettlementRecord,
        abort: Optional[asyncio.Event] = None,
    ) -> DeliveryOutcome:
        """Deliver ``record``; any 2xx is success, everything else is retried."""
        record_id = str(record.id)
        payload = record.to_payload()
        total_delay = 0.0
        last_error: Optional[str] = None
        attempt = 0

        while True:
            attempt += 1
            logger.info(
                "Ledger delivery attempt %s/%s id=%s",
                attempt,
                self.backoff.max_attempts,
                record_id,
            )
            try:
                response = await self._post_shielded(payload)
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
            else:
                if 200 <= response.status_code < 300:
                    logger.info("Ledger delivery succeeded id=%s attempts=%s", record_id, attempt)
                    return DeliveryOutcome(
                        record_id=record_id,
                        delivered=True,
                        attempts=attempt,
                        total_delay_seconds=total_delay,
                    )
                last_error = f"Ledger returned {response.status_code}: {response.text[:200]}"

            logger.warning("Ledger delivery attempt %s failed id=%s: %s", attempt, record_id, last_error)

            if not self.backoff.has_next(attempt):
                break

            delay = self.backoff.get_delay(attempt)
            if abort is None or not abort.is_set():
                total_delay += delay
                await self._sleep(delay)

            if abort is not None and abort.is_set():
                logger.warning("Ledger delivery abandoned id=%s after %s attempts", record_id, attempt)
                return DeliveryOutcome(
                    record_id=record_id,
                    delivered=False,
                    attempts=attempt,
                    total_delay_seconds=total_delay,
                    error=last_error,
                    abandoned=True,
                )

        logger.error(
            "Ledger delivery exhausted id=%s attempts=%s last_error=%s",
            record_id,
            attempt,
            last_error,
        )
        return DeliveryOutcome(
            record_id=record_id,
            delivered=False,
            attempts=attempt,
            total_delay_seconds=total_delay,
            error=last_error,
        )

    async def notify(
        self,
        record: SettlementRecord,
        abort: Optional[asyncio.Event] = None,
    ) -> SettlementResult:
        """Deliver and wrap the outcome; the trade status is never downgraded."""
        outcome = await self.deliver(record, abort=abort)
        warning = None
        if not outcome.delivered:
            warning = DeliveryExhausted(outcome.record_id, outcome.attempts, outcome.error)
        return SettlementResult(record=record, outcome=outcome, warning=warning)


__all__ = ["SettlementNotifier"]
