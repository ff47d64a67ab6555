"""Quote resolution against the aggregator."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import Quote, QuoteRequest
from .normalize import normalize_quote

if TYPE_CHECKING:
    from ...providers.base import AggregatorProvider

logger = logging.getLogger(__name__)


class QuoteResolver:
    """
    Fetches a fresh quote and normalizes it.

    Failures surface immediately: a quote is never served from an earlier
    response, and nothing here retries.
    """

    def __init__(self, aggregator: "AggregatorProvider"):
        self.aggregator = aggregator

    async def resolve(self, request: QuoteRequest) -> Quote:
        payload = await self.aggregator.quote(
            chain_id=request.chain_id,
            from_token_address=request.from_token.address,
            to_token_address=request.to_token.address,
            amount=request.amount_base,
            slippage=request.slippage.as_aggregator_param(),
        )
        quote = normalize_quote(payload, request)
        logger.info(
            "Quote %s->%s chain=%s in=%s out=%s min=%s schema=%s",
            request.from_token.symbol,
            request.to_token.symbol,
            request.chain_id,
            quote.from_amount_base,
            quote.to_amount_base,
            quote.to_amount_min_base,
            quote.schema,
        )
        return quote


__all__ = ["QuoteResolver"]
