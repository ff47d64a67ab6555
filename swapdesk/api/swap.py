import logging
from typing import Any, Dict, Literal, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..cache import TTLCache
from ..config import settings
from ..core.errors import ValidationError, classify_wallet_error
from ..core.swap.pipeline import SwapPipeline, build_swap_pipeline
from ..core.swap.slippage import Slippage


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/swap")

SlippageUnit = Literal["percent", "fraction"]

_pipeline: Optional[SwapPipeline] = None
_quote_cache: Optional[TTLCache] = None


def get_swap_pipeline() -> SwapPipeline:
    """Get or create the swap pipeline wired from settings."""
    global _pipeline
    if _pipeline is None:
        _pipeline = build_swap_pipeline(settings)
    return _pipeline


def get_quote_cache() -> TTLCache:
    """Display-quote cache. Approval, build and settlement never read it."""
    global _quote_cache
    if _quote_cache is None:
        _quote_cache = TTLCache(
            default_ttl=settings.quote_cache_ttl_seconds,
            max_size=settings.max_cache_size,
        )
    return _quote_cache


def explicit_slippage(value: Optional[str], unit: Optional[str]) -> Optional[Slippage]:
    """HTTP callers must state the unit; nothing is inferred here."""
    if value is None or value == "":
        return None
    if unit is None:
        raise ValidationError(
            "slippage_unit is required when slippage is given ('percent' or 'fraction')",
            details={"field": "slippage_unit"},
        )
    return Slippage.parse(value, unit)


class ApprovalRequest(BaseModel):
    chain_id: int = Field(description="EVM chain id")
    token_address: str = Field(description="Token symbol or contract address")
    amount: str = Field(description="Required allowance in base units")
    user_address: str = Field(description="Connected wallet (token owner)")
    router_address: Optional[str] = Field(
        default=None, description="Spender reported by a quote; the configured router otherwise"
    )


class BuildRequest(BaseModel):
    chain_id: int = Field(description="EVM chain id")
    from_token: str = Field(description="Symbol or address to sell")
    to_token: str = Field(description="Symbol or address to buy")
    amount: Optional[str] = Field(default=None, description="Human-readable amount to sell")
    amount_base: Optional[str] = Field(default=None, description="Amount to sell in base units")
    slippage: Optional[str] = Field(default=None, description="Slippage tolerance")
    slippage_unit: Optional[SlippageUnit] = Field(default=None, description="Unit of slippage")
    user_address: str = Field(description="Connected wallet that will sign")
    allow_high_impact: bool = Field(default=False, description="Accept price impact above the block threshold")


class WalletErrorRequest(BaseModel):
    chain_id: Optional[int] = Field(default=None, description="EVM chain id")
    stage: Literal["approval", "swap"] = Field(description="Transaction the wallet failed on")
    code: Optional[Union[int, str]] = Field(default=None, description="Wallet error code, e.g. 4001")
    message: str = Field(default="", description="Wallet error message")


class SettlementRequest(BaseModel):
    chain_id: int = Field(description="EVM chain id")
    wallet_address: str
    from_token: str
    to_token: str
    from_amount: str = Field(description="Amount sold, base units")
    to_amount: str = Field(description="Amount received, base units")
    tx_hash: str
    slippage: Optional[str] = None
    slippage_unit: Optional[SlippageUnit] = None


@router.get("/quote")
async def get_swap_quote(
    chain_id: int = Query(..., description="EVM chain id"),
    from_token: str = Query(..., description="Symbol or address to sell"),
    to_token: str = Query(..., description="Symbol or address to buy"),
    amount: str = Query(..., description="Human-readable amount to sell"),
    slippage: Optional[str] = Query(None, description="Slippage tolerance"),
    slippage_unit: Optional[SlippageUnit] = Query(None, description="'percent' or 'fraction'"),
    pipeline: SwapPipeline = Depends(get_swap_pipeline),
    cache: TTLCache = Depends(get_quote_cache),
) -> Dict[str, Any]:
    parsed_slippage = explicit_slippage(slippage, slippage_unit)
    key = (
        chain_id,
        from_token.lower(),
        to_token.lower(),
        amount,
        str(parsed_slippage.fraction) if parsed_slippage else None,
    )

    cached = await cache.get(key)
    if cached is not None:
        return {"success": True, "cached": True, **cached}

    result = await pipeline.quote(chain_id, from_token, to_token, amount, parsed_slippage)
    payload = result.to_dict()
    await cache.set(key, payload)
    return {"success": True, "cached": False, **payload}


@router.post("/approval")
async def post_swap_approval(
    req: ApprovalRequest,
    pipeline: SwapPipeline = Depends(get_swap_pipeline),
) -> Dict[str, Any]:
    check = await pipeline.check_approval(
        req.chain_id, req.token_address, req.amount, req.user_address, req.router_address
    )
    return {"success": True, **check.to_dict()}


@router.post("/build")
async def post_swap_build(
    req: BuildRequest,
    pipeline: SwapPipeline = Depends(get_swap_pipeline),
) -> Dict[str, Any]:
    plan = await pipeline.build(
        req.chain_id,
        req.from_token,
        req.to_token,
        req.user_address,
        req.amount,
        explicit_slippage(req.slippage, req.slippage_unit),
        amount_base=req.amount_base,
        allow_high_impact=req.allow_high_impact,
    )
    return {"success": True, **plan.to_dict()}


@router.post("/settlement")
async def post_swap_settlement(
    req: SettlementRequest,
    pipeline: SwapPipeline = Depends(get_swap_pipeline),
) -> Dict[str, Any]:
    """Always 200 once the trade is reported; a ledger failure shows up as ``warning``."""
    result = await pipeline.settle(
        req.chain_id,
        req.wallet_address,
        req.from_token,
        req.to_token,
        req.from_amount,
        req.to_amount,
        req.tx_hash,
        explicit_slippage(req.slippage, req.slippage_unit),
    )
    return {"success": True, **result.to_dict()}


@router.post("/wallet-error")
async def post_wallet_error(req: WalletErrorRequest) -> Dict[str, Any]:
    """Classify a signer failure the client hit so it can render the right message."""
    error = classify_wallet_error({"code": req.code, "message": req.message})
    logger.info("Wallet %s failed on chain %s: %s", req.stage, req.chain_id, error.code)
    return {"success": False, "stage": req.stage, **error.to_dict()}
