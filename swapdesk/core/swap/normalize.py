"""
Aggregator response normalization.

Upstream payloads come in two shapes. Each payload is classified once at
the boundary into a :class:`ResponseSchema` and then mapped through that
schema's ordered candidate field lists into the canonical :class:`Quote` /
:class:`TransactionRequest`. The first present, non-null candidate wins.

* ``OKX_V5``: flat quote object, ``fromToken.decimal``, ``toTokenAmount``,
  ``priceImpactPercentage``; build responses nest it under ``routerResult``
  next to ``tx``.
* ``LEGACY_INFO``: ``fromTokenInfo.decimals``, ``toAmount``, ``toAmountMin``,
  ``gasLimit``; build responses carry a ``transaction`` object.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..errors import NoQuoteAvailable
from ..validation import is_valid_address
from .models import Quote, QuoteRequest, TransactionRequest

logger = logging.getLogger(__name__)

SUCCESS_CODES = ('0', '')


class ResponseSchema(str, Enum):
    OKX_V5 = 'okx_v5'
    LEGACY_INFO = 'legacy_info'


@dataclass(frozen=True)
class QuoteFieldMap:
    """Ordered candidate paths (dotted) for each logical quote field."""
    from_amount: Sequence[str]
    to_amount: Sequence[str]
    to_amount_min: Sequence[str]
    from_decimals: Sequence[str]
    to_decimals: Sequence[str]
    estimated_gas: Sequence[str]
    price_impact: Sequence[str]
    exchange_rate: Sequence[str]
    router: Sequence[str]  # ERC-20 approve spender; the swap tx target is not one


FIELD_MAPS: Dict[ResponseSchema, QuoteFieldMap] = {
    ResponseSchema.OKX_V5: QuoteFieldMap(
        from_amount=('fromTokenAmount', 'fromAmount'),
        to_amount=('toTokenAmount', 'toAmount'),
        to_amount_min=('minReceiveAmount', 'tx.minReceiveAmount', 'toAmountMin'),
        from_decimals=('fromToken.decimal', 'fromToken.decimals'),
        to_decimals=('toToken.decimal', 'toToken.decimals'),
        estimated_gas=('estimateGasFee', 'estimatedGas', 'tx.gas'),
        price_impact=('priceImpactPercentage', 'priceImpact'),
        exchange_rate=('exchangeRate', 'price'),
        router=('dexTokenApproveAddress', 'routerAddress', 'dexContractAddress'),
    ),
    ResponseSchema.LEGACY_INFO: QuoteFieldMap(
        from_amount=('fromAmount', 'fromTokenAmount'),
        to_amount=('toAmount', 'toTokenAmount'),
        to_amount_min=('toAmountMin', 'minReceiveAmount', 'transaction.minReceiveAmount'),
        from_decimals=('fromTokenInfo.decimals', 'fromTokenInfo.decimal', 'fromToken.decimals'),
        to_decimals=('toTokenInfo.decimals', 'toTokenInfo.decimal', 'toToken.decimals'),
        estimated_gas=('gasLimit', 'estimatedGas', 'estimateGas', 'transaction.gasLimit', 'transaction.gas'),
        price_impact=('priceImpact', 'priceImpactPercentage'),
        exchange_rate=('exchangeRate', 'price'),
        router=('dexTokenApproveAddress', 'routerAddress', 'dexContractAddress', 'spender'),
    ),
}

TX_CONTAINERS = ('tx', 'transaction', 'txData')
TX_GAS_FIELDS = ('gas', 'gasLimit')
TX_DATA_FIELDS = ('data', 'input')


# ----------------------------------------------------------------------
# Generic lookups
# ----------------------------------------------------------------------

def _resolve_path(data: Mapping[str, Any], path: str) -> Any:
    current: Any = data
    for part in path.split('.'):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def first_present(data: Mapping[str, Any], paths: Sequence[str]) -> Any:
    """Value of the first candidate path that is present and not null/empty."""
    for path in paths:
        value = _resolve_path(data, path)
        if value is not None and value != '':
            return value
    return None


def parse_int(value: Any, field: str) -> int:
    """Integer from int, decimal string, hex string or integral decimal."""
    if isinstance(value, bool):
        raise NoQuoteAvailable(f'Aggregator returned a malformed {field}')
    if isinstance(value, int):
        return value
    text = str(value).strip()
    try:
        if text.lower().startswith('0x'):
            return int(text, 16)
        if text.isdigit():
            return int(text)
        number = Decimal(text)
    except (InvalidOperation, ValueError):
        raise NoQuoteAvailable(f'Aggregator returned a malformed {field}', details={'value': text[:80]})
    if not number.is_finite() or number != number.to_integral_value():
        raise NoQuoteAvailable(f'Aggregator returned a malformed {field}', details={'value': text[:80]})
    return int(number)


def parse_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def derive_exchange_rate(
    from_amount_base: int,
    from_decimals: int,
    to_amount_base: int,
    to_decimals: int,
) -> Optional[Decimal]:
    """
    Output tokens per input token, in human units.

    ``None`` when either side is zero: the rate is unavailable, not zero.
    """
    if from_amount_base <= 0 or to_amount_base <= 0:
        return None
    to_human = Decimal(to_amount_base).scaleb(-to_decimals)
    from_human = Decimal(from_amount_base).scaleb(-from_decimals)
    return to_human / from_human


# ----------------------------------------------------------------------
# Envelope and schema detection
# ----------------------------------------------------------------------

def unwrap_envelope(payload: Any) -> Dict[str, Any]:
    """
    Strip the ``{"code", "msg", "data"}`` envelope.

    A non-zero code is surfaced verbatim; ``data`` may be an object or a
    list whose first element is the route.
    """
    if isinstance(payload, list):
        payload = {'data': payload}
    if not isinstance(payload, Mapping):
        raise NoQuoteAvailable('Aggregator returned an unexpected response')

    code = payload.get('code')
    if code is not None and str(code) not in SUCCESS_CODES:
        message = str(payload.get('msg') or payload.get('message') or 'Aggregator error')
        raise NoQuoteAvailable(
            f'Aggregator error: {message}',
            upstream_code=str(code),
            upstream_message=message,
        )

    if 'data' not in payload:
        if code is None:
            return dict(payload)
        raise NoQuoteAvailable('Aggregator returned no route')

    data = payload.get('data')
    if isinstance(data, list):
        if not data:
            raise NoQuoteAvailable('Aggregator returned no route')
        data = data[0]
    if not isinstance(data, Mapping) or not data:
        raise NoQuoteAvailable('Aggregator returned no route')
    return dict(data)


def detect_schema(data: Mapping[str, Any]) -> ResponseSchema:
    if any(key in data for key in ('fromTokenInfo', 'toTokenInfo', 'toAmountMin')):
        return ResponseSchema.LEGACY_INFO
    if any(key in data for key in ('toTokenAmount', 'fromTokenAmount', 'priceImpactPercentage')):
        return ResponseSchema.OKX_V5
    if 'fromToken' in data or 'toToken' in data:
        return ResponseSchema.OKX_V5
    if 'toAmount' in data:
        return ResponseSchema.LEGACY_INFO
    raise NoQuoteAvailable(
        'Aggregator response has an unrecognized shape',
        details={'keys': sorted(data)[:20]},
    )


# ----------------------------------------------------------------------
# Canonical mapping
# ----------------------------------------------------------------------

def _decimals(data: Mapping[str, Any], paths: Sequence[str], fallback: int) -> int:
    raw = first_present(data, paths)
    if raw is None:
        return fallback
    try:
        value = int(str(raw))
    except ValueError:
        logger.warning('Ignoring malformed decimals %r; using registry value %s', raw, fallback)
        return fallback
    return value if 0 <= value <= 255 else fallback


def map_quote(data: Mapping[str, Any], schema: ResponseSchema, request: QuoteRequest) -> Quote:
    fields = FIELD_MAPS[schema]

    raw_from = first_present(data, fields.from_amount)
    from_amount = parse_int(raw_from, 'fromAmount') if raw_from is not None else request.amount_base

    raw_to = first_present(data, fields.to_amount)
    if raw_to is None:
        raise NoQuoteAvailable('Aggregator route has no output amount')
    to_amount = parse_int(raw_to, 'toAmount')

    raw_min = first_present(data, fields.to_amount_min)
    if raw_min is not None:
        to_amount_min = parse_int(raw_min, 'toAmountMin')
    else:
        to_amount_min = min(request.slippage.min_output(to_amount), to_amount)

    from_decimals = _decimals(data, fields.from_decimals, request.from_token.decimals)
    to_decimals = _decimals(data, fields.to_decimals, request.to_token.decimals)

    exchange_rate = parse_decimal(first_present(data, fields.exchange_rate))
    if exchange_rate is None or exchange_rate <= 0:
        exchange_rate = derive_exchange_rate(from_amount, from_decimals, to_amount, to_decimals)

    raw_gas = first_present(data, fields.estimated_gas)
    estimated_gas = parse_int(raw_gas, 'estimatedGas') if raw_gas is not None else 0

    router = first_present(data, fields.router)
    if router is not None and not is_valid_address(str(router)):
        router = None

    return Quote(
        chain_id=request.chain_id,
        from_token=request.from_token,
        to_token=request.to_token,
        from_amount_base=from_amount,
        to_amount_base=to_amount,
        to_amount_min_base=to_amount_min,
        exchange_rate=exchange_rate,
        price_impact_percent=parse_decimal(first_present(data, fields.price_impact)),
        estimated_gas=estimated_gas,
        router_address=str(router) if router else None,
        schema=schema.value,
    )


def normalize_quote(payload: Any, request: QuoteRequest) -> Quote:
    """Raw aggregator quote response to canonical :class:`Quote`."""
    data = unwrap_envelope(payload)
    schema = detect_schema(data)
    return map_quote(data, schema, request)


@dataclass(frozen=True)
class NormalizedBuild:
    quote: Quote
    transaction: TransactionRequest
    gas_estimate: Optional[int]
    schema: ResponseSchema


def _split_build(data: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Return ``(quote_echo, tx)`` from one build-response item."""
    tx = None
    for key in TX_CONTAINERS:
        candidate = data.get(key)
        if isinstance(candidate, Mapping) and candidate:
            tx = dict(candidate)
            break
    if tx is None:
        raise NoQuoteAvailable('Aggregator returned no transaction payload')

    echo = data.get('routerResult')
    if isinstance(echo, Mapping) and echo:
        quote_echo = dict(echo)
    else:
        quote_echo = {k: v for k, v in data.items() if k not in TX_CONTAINERS}
    # tx-level fields (minReceiveAmount, gas, to) stay reachable via dotted paths
    quote_echo.setdefault('tx', tx)
    quote_echo.setdefault('transaction', tx)
    return quote_echo, tx


def map_transaction(tx: Mapping[str, Any], chain_id: int) -> Tuple[TransactionRequest, Optional[int]]:
    to = tx.get('to')
    data = first_present(tx, TX_DATA_FIELDS)
    if not to or not data:
        raise NoQuoteAvailable('Aggregator transaction is missing its target or calldata')
    if not is_valid_address(str(to)):
        raise NoQuoteAvailable('Aggregator transaction has an invalid target address', details={'to': str(to)})

    raw_value = tx.get('value')
    value = parse_int(raw_value, 'value') if raw_value not in (None, '') else 0

    raw_gas = first_present(tx, TX_GAS_FIELDS)
    gas = parse_int(raw_gas, 'gas') if raw_gas is not None else None

    return TransactionRequest(to=str(to), data=str(data), value=value, chain_id=chain_id), gas


def normalize_build(payload: Any, request: QuoteRequest) -> NormalizedBuild:
    """Raw build response to ``(Quote, TransactionRequest)``; never fabricates."""
    data = unwrap_envelope(payload)
    quote_echo, tx = _split_build(data)
    schema = detect_schema(quote_echo)
    quote = map_quote(quote_echo, schema, request)
    transaction, gas = map_transaction(tx, request.chain_id)
    if gas is None and quote.estimated_gas:
        gas = quote.estimated_gas
    return NormalizedBuild(quote=quote, transaction=transaction, gas_estimate=gas, schema=schema)


__all__ = [
    'ResponseSchema',
    'QuoteFieldMap',
    'FIELD_MAPS',
    'first_present',
    'parse_int',
    'parse_decimal',
    'derive_exchange_rate',
    'unwrap_envelope',
    'detect_schema',
    'map_quote',
    'normalize_quote',
    'normalize_build',
    'map_transaction',
    'NormalizedBuild',
]
