"""
Tool Registry and Executor for intent-driven swap calls.

The intent router maps chat text to a ``ToolCall``; this module runs the
matching pipeline operation and answers with a ``ToolResult``. Pipeline
errors come back as ``{success: false, error, code}`` so the caller can
show a specific message.
"""

import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Coroutine, Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.amounts import AmountConverter
from ..core.errors import SwapPipelineError, ValidationError
from ..core.swap.pipeline import SwapPipeline
from ..core.swap.slippage import SLIPPAGE_UNITS, Slippage
from ..core.tokens import CHAIN_ALIAS_TO_ID


# =============================================================================
# Tool Calling Models
# =============================================================================

class ToolParameterType(str, Enum):
    """Supported parameter types for tool definitions"""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"


class ToolParameter(BaseModel):
    """Definition of a single tool parameter"""
    name: str
    type: ToolParameterType
    description: str
    required: bool = True
    enum: Optional[List[str]] = None


class ToolDefinition(BaseModel):
    """Definition of a tool the intent router can call"""
    name: str
    description: str
    parameters: List[ToolParameter] = Field(default_factory=list)

    def to_schema(self) -> Dict[str, Any]:
        """JSON-schema style description of the tool"""
        properties: Dict[str, Any] = {}
        required = []
        for param in self.parameters:
            prop: Dict[str, Any] = {"type": param.type.value, "description": param.description}
            if param.enum:
                prop["enum"] = param.enum
            properties[param.name] = prop
            if param.required:
                required.append(param.name)
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": {"type": "object", "properties": properties, "required": required},
        }


class WalletContext(BaseModel):
    """Connected wallet as seen by the client"""
    address: Optional[str] = None
    chain_id: Optional[int] = None


class ToolCall(BaseModel):
    """A tool call produced by the intent router"""
    id: str = Field(default_factory=lambda: uuid.uuid4().hex[:12])
    name: str
    args: Dict[str, Any] = Field(default_factory=dict)
    wallet_context: WalletContext = Field(default_factory=WalletContext)


class ToolResult(BaseModel):
    """Result of executing a tool"""
    tool_call_id: str
    success: bool
    data: Optional[Any] = None
    error: Optional[str] = None
    code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None


# =============================================================================
# Registry
# =============================================================================

@dataclass
class RegisteredTool:
    """A tool registered in the registry with its definition and handler."""
    definition: ToolDefinition
    handler: Callable[..., Coroutine[Any, Any, Any]]
    requires_address: bool = False


def _chain_id(args: Dict[str, Any], wallet: WalletContext) -> int:
    raw = args.get("chain_id", args.get("chain"))
    if raw is None:
        raw = wallet.chain_id
    if raw is None:
        raise ValidationError("Chain is required. Switch your wallet to a supported network.")
    if isinstance(raw, str) and not raw.strip().isdigit():
        chain_id = CHAIN_ALIAS_TO_ID.get(raw.strip().lower())
        if chain_id is None:
            raise ValidationError(f"Unknown chain: {raw}")
        return chain_id
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Unknown chain: {raw!r}")


def _slippage(args: Dict[str, Any]) -> Optional[Slippage]:
    """Slippage from tool arguments; a missing unit falls back to legacy inference."""
    value = args.get("slippage")
    if value is None or value == "":
        return None
    return Slippage.parse(value, args.get("slippage_unit"))


def _require(args: Dict[str, Any], *names: str) -> None:
    missing = [name for name in names if args.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required arguments: {', '.join(missing)}")


class ToolRegistry:
    """
    Registry of swap tools.

    Each tool has a definition (name, description, parameters) and a handler
    bound to the injected pipeline.
    """

    def __init__(self, pipeline: SwapPipeline, logger: Optional[logging.Logger] = None):
        self.pipeline = pipeline
        self._tools: Dict[str, RegisteredTool] = {}
        self.logger = logger or logging.getLogger(__name__)
        self._converter = AmountConverter()
        self._register_default_tools()

    def register(
        self,
        name: str,
        definition: ToolDefinition,
        handler: Callable[..., Coroutine[Any, Any, Any]],
        requires_address: bool = False,
    ) -> None:
        """Register a tool with its definition and handler."""
        self._tools[name] = RegisteredTool(
            definition=definition,
            handler=handler,
            requires_address=requires_address,
        )

    def get_definitions(self) -> List[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    def get_tool(self, name: str) -> Optional[RegisteredTool]:
        return self._tools.get(name)

    def _register_default_tools(self) -> None:
        slippage_params = [
            ToolParameter(
                name="slippage",
                type=ToolParameterType.NUMBER,
                description="Slippage tolerance; interpreted with slippage_unit",
                required=False,
            ),
            ToolParameter(
                name="slippage_unit",
                type=ToolParameterType.STRING,
                description="Unit of slippage: 'percent' (0.5 = 0.5%) or 'fraction' (0.005 = 0.5%)",
                required=False,
                enum=list(SLIPPAGE_UNITS),
            ),
        ]
        pair_params = [
            ToolParameter(name="from_token", type=ToolParameterType.STRING, description="Symbol or address to sell"),
            ToolParameter(name="to_token", type=ToolParameterType.STRING, description="Symbol or address to buy"),
            ToolParameter(name="amount", type=ToolParameterType.STRING, description="Human-readable amount to sell"),
            ToolParameter(
                name="chain",
                type=ToolParameterType.STRING,
                description="Chain id or name; defaults to the wallet's chain",
                required=False,
            ),
        ]

        self.register(
            "get_swap_quote",
            ToolDefinition(
                name="get_swap_quote",
                description="Price a swap between two tokens without building a transaction.",
                parameters=pair_params + slippage_params,
            ),
            self._handle_get_swap_quote,
        )
        self.register(
            "swap_tokens",
            ToolDefinition(
                name="swap_tokens",
                description=(
                    "Build the swap transaction for the connected wallet, including the token "
                    "approval that must be signed first when the allowance is too low."
                ),
                parameters=pair_params + slippage_params + [
                    ToolParameter(
                        name="allow_high_impact",
                        type=ToolParameterType.BOOLEAN,
                        description="Proceed even when price impact is above the blocking threshold",
                        required=False,
                    ),
                ],
            ),
            self._handle_swap_tokens,
            requires_address=True,
        )
        self.register(
            "check_token_approval",
            ToolDefinition(
                name="check_token_approval",
                description="Check whether the router may spend the amount and build the approval if not.",
                parameters=[
                    ToolParameter(name="token", type=ToolParameterType.STRING, description="Symbol or address"),
                    ToolParameter(
                        name="amount",
                        type=ToolParameterType.STRING,
                        description="Human-readable amount (or pass amount_base)",
                        required=False,
                    ),
                    ToolParameter(
                        name="amount_base",
                        type=ToolParameterType.STRING,
                        description="Amount in base units",
                        required=False,
                    ),
                    ToolParameter(name="chain", type=ToolParameterType.STRING, description="Chain", required=False),
                ],
            ),
            self._handle_check_token_approval,
            requires_address=True,
        )
        self.register(
            "confirm_swap",
            ToolDefinition(
                name="confirm_swap",
                description="Record a swap confirmed on-chain and deliver it to the ledger.",
                parameters=[
                    ToolParameter(name="tx_hash", type=ToolParameterType.STRING, description="Confirmed tx hash"),
                    ToolParameter(name="from_token", type=ToolParameterType.STRING, description="Token sold"),
                    ToolParameter(name="to_token", type=ToolParameterType.STRING, description="Token bought"),
                    ToolParameter(
                        name="from_amount_base", type=ToolParameterType.STRING, description="Sold amount, base units"
                    ),
                    ToolParameter(
                        name="to_amount_base", type=ToolParameterType.STRING, description="Bought amount, base units"
                    ),
                    ToolParameter(name="chain", type=ToolParameterType.STRING, description="Chain", required=False),
                ] + slippage_params,
            ),
            self._handle_confirm_swap,
            requires_address=True,
        )

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_get_swap_quote(self, args: Dict[str, Any], wallet: WalletContext) -> Dict[str, Any]:
        _require(args, "from_token", "to_token", "amount")
        result = await self.pipeline.quote(
            _chain_id(args, wallet),
            args["from_token"],
            args["to_token"],
            str(args["amount"]),
            _slippage(args),
        )
        return result.to_dict()

    async def _handle_swap_tokens(self, args: Dict[str, Any], wallet: WalletContext) -> Dict[str, Any]:
        _require(args, "from_token", "to_token", "amount")
        plan = await self.pipeline.build(
            _chain_id(args, wallet),
            args["from_token"],
            args["to_token"],
            wallet.address or "",
            str(args["amount"]),
            _slippage(args),
            allow_high_impact=bool(args.get("allow_high_impact", False)),
        )
        return plan.to_dict()

    async def _handle_check_token_approval(self, args: Dict[str, Any], wallet: WalletContext) -> Dict[str, Any]:
        _require(args, "token")
        chain_id = _chain_id(args, wallet)
        amount_base = args.get("amount_base")
        if amount_base in (None, ""):
            _require(args, "amount")
            token = self.pipeline.registry.resolve(chain_id, args["token"])
            amount_base = self._converter.to_base_units(str(args["amount"]), token.decimals)
        check = await self.pipeline.check_approval(chain_id, args["token"], amount_base, wallet.address or "")
        return check.to_dict()

    async def _handle_confirm_swap(self, args: Dict[str, Any], wallet: WalletContext) -> Dict[str, Any]:
        _require(args, "tx_hash", "from_token", "to_token", "from_amount_base", "to_amount_base")
        result = await self.pipeline.settle(
            _chain_id(args, wallet),
            wallet.address or "",
            args["from_token"],
            args["to_token"],
            str(args["from_amount_base"]),
            str(args["to_amount_base"]),
            args["tx_hash"],
            _slippage(args),
        )
        return result.to_dict()


class ToolExecutor:
    """Executes tool calls and converts pipeline errors into failed results."""

    def __init__(
        self,
        registry: ToolRegistry,
        logger: Optional[logging.Logger] = None,
    ):
        self.registry = registry
        self.logger = logger or logging.getLogger(__name__)

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        tool = self.registry.get_tool(tool_call.name)
        if not tool:
            return ToolResult(
                tool_call_id=tool_call.id,
                success=False,
                error=f"Unknown tool: {tool_call.name}",
                code="unknown_tool",
            )

        if tool.requires_address and not tool_call.wallet_context.address:
            return ToolResult(
                tool_call_id=tool_call.id,
                success=False,
                error="Wallet address is required. Connect your wallet first.",
                code="validation",
            )

        try:
            data = await tool.handler(tool_call.args, tool_call.wallet_context)
        except SwapPipelineError as e:
            self.logger.warning("Tool %s failed: %s (%s)", tool_call.name, e.message, e.code)
            return ToolResult(
                tool_call_id=tool_call.id,
                success=False,
                error=e.message,
                code=e.code,
                details=e.details or None,
            )

        return ToolResult(tool_call_id=tool_call.id, success=True, data=data)


__all__ = [
    "ToolCall",
    "ToolResult",
    "WalletContext",
    "ToolDefinition",
    "ToolParameter",
    "ToolParameterType",
    "ToolRegistry",
    "ToolExecutor",
]
