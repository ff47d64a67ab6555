"""Static per-chain token registry and chain metadata."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional

from .errors import UnsupportedChain, ValidationError

# Pseudo-address aggregators use for the chain's native asset.
NATIVE_TOKEN_ADDRESS = '0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE'
ZERO_ADDRESS = '0x0000000000000000000000000000000000000000'

NATIVE_ADDRESSES: FrozenSet[str] = frozenset({NATIVE_TOKEN_ADDRESS.lower(), ZERO_ADDRESS})


@dataclass(frozen=True)
class Token:
    """Immutable token metadata."""

    address: str
    symbol: str
    decimals: int
    is_native: bool = False
    name: str = ''
    aliases: FrozenSet[str] = field(default_factory=frozenset, compare=False)

    def __post_init__(self) -> None:
        if not 0 <= int(self.decimals) <= 255:
            raise ValueError(f'decimals out of range for {self.symbol}: {self.decimals}')

    def matches(self, address: str) -> bool:
        return self.address.lower() == (address or '').lower()

    def to_dict(self) -> Dict[str, object]:
        return {
            'address': self.address,
            'symbol': self.symbol,
            'decimals': self.decimals,
            'is_native': self.is_native,
            'name': self.name or self.symbol,
        }


CHAIN_METADATA: Dict[int, Dict[str, object]] = {
    1: {
        'name': 'Ethereum',
        'blockchain': 'Ethereum',
        'aliases': ['ethereum', 'eth', 'mainnet'],
        'native_symbol': 'ETH',
        'explorer': 'https://etherscan.io',
    },
    43114: {
        'name': 'Avalanche C-Chain',
        'blockchain': 'Avalanche',
        'aliases': ['avalanche', 'avax', 'c-chain'],
        'native_symbol': 'AVAX',
        'explorer': 'https://snowtrace.io',
    },
}

CHAIN_ALIAS_TO_ID: Dict[str, int] = {}
for _chain_id, _meta in CHAIN_METADATA.items():
    for _alias in _meta.get('aliases', []):  # type: ignore[union-attr]
        CHAIN_ALIAS_TO_ID[str(_alias)] = _chain_id


TOKEN_REGISTRY: Dict[int, Dict[str, Token]] = {
    1: {
        'ETH': Token(NATIVE_TOKEN_ADDRESS, 'ETH', 18, True, 'Ether', frozenset({'eth', 'native', 'ether'})),
        'WETH': Token('0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2', 'WETH', 18, False, 'Wrapped Ether', frozenset({'weth'})),
        'USDC': Token('0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48', 'USDC', 6, False, 'USD Coin', frozenset({'usdc', 'usd coin'})),
        'USDT': Token('0xdAC17F958D2ee523a2206206994597C13D831ec7', 'USDT', 6, False, 'Tether USD', frozenset({'usdt', 'tether'})),
    },
    43114: {
        'AVAX': Token(NATIVE_TOKEN_ADDRESS, 'AVAX', 18, True, 'Avalanche', frozenset({'avax', 'native'})),
        'USDC': Token('0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E', 'USDC', 6, False, 'USD Coin', frozenset({'usdc', 'usd coin'})),
        'SIERRA': Token('0x6E6080e15f8C0010d333D8CAeEaD29292ADb78f7', 'SIERRA', 6, False, 'Sierra Token', frozenset({'sierra'})),
    },
}

# Stable reference asset per chain, used to price settlements in USD.
STABLE_REFERENCE: Dict[int, str] = {
    1: 'USDC',
    43114: 'USDC',
}


def is_native_address(address: Optional[str]) -> bool:
    return bool(address) and address.lower() in NATIVE_ADDRESSES  # type: ignore[union-attr]


class TokenRegistry:
    """Lookup helper over a static ``{chain_id: {symbol: Token}}`` mapping."""

    def __init__(self, tokens: Optional[Dict[int, Dict[str, Token]]] = None) -> None:
        self._tokens = tokens if tokens is not None else TOKEN_REGISTRY
        self._aliases: Dict[int, Dict[str, str]] = {}
        for chain_id, entries in self._tokens.items():
            alias_map: Dict[str, str] = {}
            for symbol, token in entries.items():
                alias_map[symbol.lower()] = symbol
                for alias in token.aliases:
                    alias_map[alias.lower()] = symbol
            self._aliases[chain_id] = alias_map

    @property
    def chain_ids(self) -> List[int]:
        return sorted(self._tokens)

    def ensure_chain(self, chain_id: int) -> Dict[str, Token]:
        entries = self._tokens.get(chain_id)
        if entries is None:
            raise UnsupportedChain(chain_id)
        return entries

    def get(self, chain_id: int, symbol_or_address: str) -> Optional[Token]:
        entries = self.ensure_chain(chain_id)
        key = (symbol_or_address or '').strip()
        if not key:
            return None
        if key.lower().startswith('0x'):
            return self.by_address(chain_id, key)
        symbol = self._aliases[chain_id].get(key.lower())
        return entries.get(symbol) if symbol else None

    def resolve(self, chain_id: int, symbol_or_address: str) -> Token:
        """Like :meth:`get` but raises ``ValidationError`` for unknown tokens."""
        token = self.get(chain_id, symbol_or_address)
        if token is None:
            supported = ', '.join(sorted(self.ensure_chain(chain_id)))
            raise ValidationError(
                f'Unknown token: {symbol_or_address}',
                details={'chain_id': chain_id, 'supported': supported},
            )
        return token

    def by_address(self, chain_id: int, address: str) -> Optional[Token]:
        entries = self.ensure_chain(chain_id)
        if is_native_address(address):
            return next((t for t in entries.values() if t.is_native), None)
        lowered = address.lower()
        for token in entries.values():
            if token.address.lower() == lowered:
                return token
        return None

    def native(self, chain_id: int) -> Optional[Token]:
        return next((t for t in self.ensure_chain(chain_id).values() if t.is_native), None)

    def stable_reference(self, chain_id: int) -> Optional[Token]:
        symbol = STABLE_REFERENCE.get(chain_id)
        if not symbol:
            return None
        return self._tokens.get(chain_id, {}).get(symbol)

    def supported_symbols(self, chain_id: int) -> List[str]:
        return sorted(self.ensure_chain(chain_id))


def chain_name(chain_id: int) -> str:
    meta = CHAIN_METADATA.get(chain_id)
    if not meta:
        return f'Chain {chain_id}'
    return str(meta.get('name', f'Chain {chain_id}'))


def blockchain_label(chain_id: int) -> str:
    meta = CHAIN_METADATA.get(chain_id) or {}
    return str(meta.get('blockchain') or chain_name(chain_id))


default_registry = TokenRegistry()


__all__ = [
    'NATIVE_TOKEN_ADDRESS',
    'ZERO_ADDRESS',
    'NATIVE_ADDRESSES',
    'Token',
    'TokenRegistry',
    'TOKEN_REGISTRY',
    'STABLE_REFERENCE',
    'CHAIN_METADATA',
    'CHAIN_ALIAS_TO_ID',
    'is_native_address',
    'chain_name',
    'blockchain_label',
    'default_registry',
]
