from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..core.swap.pipeline import SwapPipeline
from ..core.tokens import chain_name
from .swap import get_swap_pipeline

router = APIRouter()


@router.get("/healthz")
async def health_check(pipeline: SwapPipeline = Depends(get_swap_pipeline)) -> Dict[str, Any]:
    """Liveness plus readiness of the aggregator and chain providers"""

    aggregator = pipeline.quote_resolver.aggregator
    chain_reader = pipeline.builder.chain_reader

    provider_status = {
        aggregator.name: "ready" if await aggregator.ready() else "unconfigured",
        chain_reader.name: "ready" if await chain_reader.ready() else "unconfigured",
    }

    all_ready = all(status == "ready" for status in provider_status.values())

    return {
        "status": "healthy" if all_ready else "degraded",
        "providers": provider_status,
        "chains": {
            str(chain_id): {
                "name": chain_name(chain_id),
                "tokens": pipeline.registry.supported_symbols(chain_id),
            }
            for chain_id in pipeline.registry.chain_ids
        },
        "approval_policy": pipeline.allowance_manager.describe(),
    }
