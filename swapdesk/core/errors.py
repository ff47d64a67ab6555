"""
Error Taxonomy

Typed failures raised by the quote-to-settlement pipeline.
Each error knows its HTTP status, whether the *user* may retry it,
and carries structured details for the client to render a specific message.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Categories of pipeline failures."""

    VALIDATION = "validation"                    # Bad or missing input
    UNSUPPORTED_CHAIN = "unsupported_chain"      # Chain not configured
    NO_QUOTE = "no_quote_available"              # Aggregator has no usable route
    INSUFFICIENT_ALLOWANCE = "insufficient_allowance"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    WALLET_REJECTED = "wallet_rejected"          # User declined signing
    UPSTREAM_UNAVAILABLE = "upstream_unavailable"  # Aggregator / RPC failure
    DELIVERY_EXHAUSTED = "delivery_exhausted"    # Ledger webhook gave up
    RATE_LIMITED = "rate_limited"


@dataclass
class ErrorContext:
    """Additional context about an error."""

    category: ErrorCategory
    retriable: bool = False
    retry_after_seconds: Optional[float] = None
    suggested_action: Optional[str] = None
    provider: Optional[str] = None
    chain_id: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)


class SwapPipelineError(Exception):
    """
    Base class for every failure surfaced to the caller.

    Subclasses set ``category`` and ``http_status``; ``retriable`` describes
    whether asking again can help (it never triggers an automatic retry).
    """

    category: ErrorCategory = ErrorCategory.VALIDATION
    http_status: int = 400
    retriable: bool = False

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        provider: Optional[str] = None,
        chain_id: Optional[int] = None,
        suggested_action: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = ErrorContext(
            category=self.category,
            retriable=self.retriable,
            retry_after_seconds=retry_after,
            suggested_action=suggested_action,
            provider=provider,
            chain_id=chain_id,
            details=dict(details or {}),
        )

    @property
    def code(self) -> str:
        return self.category.value

    @property
    def details(self) -> Dict[str, Any]:
        return self.context.details

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.message,
            "code": self.code,
            "retriable": self.retriable,
        }
        if self.context.details:
            payload["details"] = self.context.details
        if self.context.suggested_action:
            payload["suggested_action"] = self.context.suggested_action
        if self.context.retry_after_seconds is not None:
            payload["retry_after"] = self.context.retry_after_seconds
        return payload


class ValidationError(SwapPipelineError):
    """Bad or missing input. Never touches the network."""

    category = ErrorCategory.VALIDATION
    http_status = 400


class UnsupportedChain(SwapPipelineError):
    category = ErrorCategory.UNSUPPORTED_CHAIN
    http_status = 400

    def __init__(self, chain_id: Any, message: Optional[str] = None):
        super().__init__(
            message or f"Unsupported chain: {chain_id}",
            details={"chain_id": chain_id},
            suggested_action="Switch your wallet to a supported network",
        )


class NoQuoteAvailable(SwapPipelineError):
    """The aggregator returned no usable route. Stale quotes are never reused."""

    category = ErrorCategory.NO_QUOTE
    http_status = 404
    retriable = True

    def __init__(
        self,
        message: str = "No quote available for this token pair",
        *,
        upstream_code: Optional[str] = None,
        upstream_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if upstream_code is not None:
            merged["upstream_code"] = upstream_code
        if upstream_message:
            merged["upstream_message"] = upstream_message
        super().__init__(
            message,
            details=merged,
            provider="okx",
            suggested_action="Request a fresh quote or try a different amount",
        )


class InsufficientAllowance(SwapPipelineError):
    """
    Informational: the spender may not move enough tokens yet.

    Triggers the approval sub-flow instead of aborting the swap.
    """

    category = ErrorCategory.INSUFFICIENT_ALLOWANCE
    http_status = 409

    def __init__(
        self,
        current: Optional[int] = None,
        required: Optional[int] = None,
        spender: Optional[str] = None,
        token: Optional[str] = None,
    ):
        # a wallet-reported failure knows neither amount
        details: Dict[str, Any] = {"spender": spender, "token": token}
        if current is not None:
            details["current_allowance"] = str(current)
        if required is not None:
            details["required_allowance"] = str(required)
        super().__init__(
            "Token allowance is too low; approve the router before swapping",
            details=details,
            suggested_action="Sign the approval transaction, then retry the swap",
        )


class InsufficientBalance(SwapPipelineError):
    category = ErrorCategory.INSUFFICIENT_BALANCE
    http_status = 400

    def __init__(
        self,
        available: int,
        required: int,
        token: Optional[str] = None,
        message: Optional[str] = None,
    ):
        super().__init__(
            message or f"Insufficient token balance. You have {available} but need {required}",
            details={
                "available": str(available),
                "required": str(required),
                "token": token,
            },
            suggested_action="Add funds to wallet or reduce the amount",
        )


class WalletRejected(SwapPipelineError):
    category = ErrorCategory.WALLET_REJECTED
    http_status = 400

    def __init__(self, message: str = "Transaction was rejected in the wallet"):
        super().__init__(
            message,
            suggested_action="Confirm the transaction in your wallet to continue",
        )


class UpstreamUnavailable(SwapPipelineError):
    """Aggregator or chain RPC failure (transport error, timeout, 5xx)."""

    category = ErrorCategory.UPSTREAM_UNAVAILABLE
    http_status = 502
    retriable = True

    def __init__(
        self,
        message: str = "Upstream service unavailable",
        *,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            details=details,
            provider=provider,
            suggested_action="Try again in a moment",
        )


class DeliveryExhausted(SwapPipelineError):
    """
    The ledger webhook failed on every attempt.

    The trade itself succeeded; ``record_id`` lets the bookkeeping write
    be retried out-of-band.
    """

    category = ErrorCategory.DELIVERY_EXHAUSTED
    http_status = 202
    retriable = True

    def __init__(self, record_id: str, attempts: int, last_error: Optional[str] = None):
        super().__init__(
            "Swap succeeded but the settlement record could not be delivered",
            details={
                "record_id": record_id,
                "attempts": attempts,
                "last_error": last_error,
            },
            provider="ledger",
            suggested_action="Retry the ledger write with the record id",
        )
        self.record_id = record_id
        self.attempts = attempts


class RateLimited(SwapPipelineError):
    category = ErrorCategory.RATE_LIMITED
    http_status = 429
    retriable = True

    def __init__(self, limit: int, window_seconds: int, retry_after: int):
        super().__init__(
            "Too many requests. Please try again later.",
            details={"limit": limit, "window_seconds": window_seconds},
            retry_after=float(retry_after),
            suggested_action=f"Wait {retry_after}s before retrying",
        )
        self.limit = limit
        self.window_seconds = window_seconds
        self.retry_after = retry_after


_WALLET_REJECTION_PATTERNS = (
    "user rejected",
    "user denied",
    "rejected the request",
    "request rejected",
    "denied transaction signature",
    "cancelled by user",
)


def classify_wallet_error(error: Any) -> SwapPipelineError:
    """
    Map a wallet/signer failure into the taxonomy.

    Rejections (EIP-1193 code 4001 or the usual wallet messages) become
    ``WalletRejected``; balance failures become ``InsufficientBalance``;
    a token transfer reverting on its allowance becomes
    ``InsufficientAllowance``. Anything else is treated as an upstream
    failure.
    """
    if isinstance(error, SwapPipelineError):
        return error

    code = None
    if isinstance(error, dict):
        code = error.get("code")
        message = str(error.get("message") or "")
    else:
        code = getattr(error, "code", None)
        message = str(error)

    lowered = message.lower()
    if code in (4001, "4001", "ACTION_REJECTED") or any(p in lowered for p in _WALLET_REJECTION_PATTERNS):
        return WalletRejected()
    if "insufficient funds" in lowered or "exceeds balance" in lowered:
        return InsufficientBalance(available=0, required=0, message="Insufficient funds to cover this transaction")
    if "exceeds allowance" in lowered or "insufficient allowance" in lowered:
        return InsufficientAllowance()
    return UpstreamUnavailable(message or "Wallet failed to submit the transaction", provider="wallet")
