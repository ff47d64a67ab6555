import os

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    def model_post_init(self, __context: Any) -> None:
        """Pick up legacy environment aliases and reject inconsistent bounds."""

        super().model_post_init(__context)

        if not self.okx_api_passphrase:
            fallback = os.getenv("OKX_PASSPHRASE")
            if fallback:
                object.__setattr__(self, "okx_api_passphrase", fallback)

        if self.min_slippage_percent > self.max_slippage_percent:
            raise ValueError("Min slippage cannot be greater than max slippage")
        if not (self.min_slippage_percent <= self.default_slippage_percent <= self.max_slippage_percent):
            raise ValueError("Default slippage must be between min and max slippage")
        if self.price_impact_warning_threshold > self.price_impact_block_threshold:
            raise ValueError("Warning threshold cannot be greater than block threshold")
        if self.approval_strategy not in {"unlimited", "exact_with_margin"}:
            raise ValueError("approval_strategy must be 'unlimited' or 'exact_with_margin'")

    # Server Settings
    host: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=8000, description="Server port")
    log_level: str = Field(default="INFO", description="Logging level")

    # Aggregator (OKX DEX) credentials
    okx_api_key: str = Field(default="", description="OKX API key")
    okx_secret_key: str = Field(default="", description="OKX API secret used for request signing")
    okx_api_passphrase: str = Field(
        default="",
        description="OKX API passphrase",
        validation_alias=AliasChoices("okx_api_passphrase", "OKX_API_PASSPHRASE"),
    )
    okx_project_id: str = Field(default="", description="OKX developer project id")
    okx_base_url: str = Field(default="https://www.okx.com", description="OKX REST base URL")
    okx_rate_limit_retries: int = Field(
        default=3,
        ge=0,
        description="Times a rate-limited aggregator request is re-sent before giving up",
    )

    # Chain access
    rpc_urls: Dict[int, str] = Field(
        default_factory=lambda: {
            1: "https://ethereum-rpc.publicnode.com",
            43114: "https://api.avax.network/ext/bc/C/rpc",
        },
        description="JSON-RPC endpoint per chain id",
    )
    okx_routers: Dict[int, str] = Field(
        default_factory=lambda: {
            1: "0x40aA958dd87FC8305b97f2BA922CDdCa374bcD7f",
            43114: "0x40aA958dd87FC8305b97f2BA922CDdCa374bcD7f",
        },
        description="Static aggregator router (approval spender) per chain id",
    )
    request_timeout_seconds: int = Field(default=30, description="Timeout for every upstream call")

    # Approval policy (fixed per deployment)
    approval_strategy: str = Field(
        default="exact_with_margin",
        description="'unlimited' or 'exact_with_margin'",
    )
    approval_margin_percent: Decimal = Field(
        default=Decimal("20"),
        ge=0,
        description="Headroom added on top of the required amount for exact approvals",
    )

    # Gas policy
    gas_margins: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "approval": Decimal("1.15"),
            "simple_swap": Decimal("1.25"),
            "standard_swap": Decimal("1.35"),
            "complex_swap": Decimal("1.5"),
        },
        description="Gas-limit multiplier per operation class",
    )
    gas_fallback_limits: Dict[str, int] = Field(
        default_factory=lambda: {
            "approval": 50_000,
            "simple_swap": 150_000,
            "standard_swap": 250_000,
            "complex_swap": 400_000,
        },
        description="Gas limit used when the aggregator reports no estimate",
    )
    complex_tokens: List[str] = Field(
        default_factory=lambda: ["SIERRA"],
        description="Token symbols whose routing needs the complex-swap margin",
    )
    congestion_thresholds_gwei: Dict[int, Dict[str, Decimal]] = Field(
        default_factory=lambda: {
            1: {"low": Decimal("20"), "high": Decimal("80")},
            43114: {"low": Decimal("25"), "high": Decimal("100")},
        },
        description="Base-fee thresholds (gwei) separating low/normal/high congestion",
    )
    priority_fee_gwei: Dict[str, Decimal] = Field(
        default_factory=lambda: {
            "low": Decimal("0.5"),
            "normal": Decimal("1.5"),
            "high": Decimal("3"),
        },
        description="Priority fee tier per congestion level",
    )
    max_gas_price_gwei: Dict[int, Decimal] = Field(
        default_factory=dict,
        description="Optional per-chain ceiling on maxFeePerGas",
    )

    # Slippage / safety
    default_slippage_percent: Decimal = Field(default=Decimal("0.5"), description="Default slippage (%)")
    min_slippage_percent: Decimal = Field(default=Decimal("0.1"), description="Lowest accepted slippage (%)")
    max_slippage_percent: Decimal = Field(default=Decimal("50"), description="Highest accepted slippage (%)")
    low_liquidity_tokens: List[str] = Field(
        default_factory=lambda: ["SIERRA"],
        description="Tokens that get the low-liquidity recommended slippage",
    )
    low_liquidity_slippage_percent: Decimal = Field(
        default=Decimal("10"),
        description="Recommended slippage (%) when a low-liquidity token is involved",
    )
    price_impact_warning_threshold: Decimal = Field(default=Decimal("3"), description="Warn above this impact (%)")
    price_impact_block_threshold: Decimal = Field(default=Decimal("10"), description="Block above this impact (%)")

    # Settlement ledger
    ledger_webhook_url: str = Field(
        default="https://n8n.balampay.com/webhook/user_swaps",
        description="Endpoint receiving settlement records",
    )
    ledger_max_attempts: int = Field(default=3, ge=1, description="Delivery attempts per record")
    ledger_base_delay_seconds: float = Field(default=2.0, ge=0, description="Backoff base delay")
    ledger_max_delay_seconds: float = Field(default=30.0, ge=0, description="Backoff delay ceiling")

    # Rate Limiting
    rate_limit_max_requests: int = Field(default=60, ge=1, description="Requests per window per client")
    rate_limit_window_seconds: int = Field(default=60, ge=1, description="Fixed window length")

    # Cache Settings
    max_cache_size: int = Field(default=1000, description="Maximum cache size")
    quote_cache_ttl_seconds: int = Field(default=15, description="TTL for cached display quotes")

    @property
    def has_okx_credentials(self) -> bool:
        return all(
            (self.okx_api_key, self.okx_secret_key, self.okx_api_passphrase, self.okx_project_id)
        )

    @property
    def supported_chain_ids(self) -> List[int]:
        return sorted(set(self.rpc_urls) & set(self.okx_routers))


# Global settings instance
settings = Settings()
