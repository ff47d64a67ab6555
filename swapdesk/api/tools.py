import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends

from ..core.swap.pipeline import SwapPipeline
from ..tools.dispatch import ToolCall, ToolExecutor, ToolRegistry, ToolResult
from .swap import get_swap_pipeline

router = APIRouter(prefix="/tools")
_logger = logging.getLogger(__name__)


def get_tool_executor(pipeline: SwapPipeline = Depends(get_swap_pipeline)) -> ToolExecutor:
    return ToolExecutor(ToolRegistry(pipeline))


@router.get("/definitions")
async def list_tool_definitions(
    executor: ToolExecutor = Depends(get_tool_executor),
) -> List[Dict[str, Any]]:
    """Tool schemas for the intent router"""
    return [definition.to_schema() for definition in executor.registry.get_definitions()]


@router.post("/call")
async def call_tool(
    call: ToolCall,
    executor: ToolExecutor = Depends(get_tool_executor),
) -> ToolResult:
    result = await executor.execute(call)
    _logger.info("Tool %s finished success=%s", call.name, result.success)
    return result
