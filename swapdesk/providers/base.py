from abc import ABC, abstractmethod
from typing import Any, Dict


class Provider(ABC):
    """Base provider interface"""

    name: str

    @abstractmethod
    async def ready(self) -> bool:
        """Check if provider is ready to serve requests"""
        pass


class AggregatorProvider(Provider):
    """Swap aggregator: prices routes and builds swap transactions"""

    @abstractmethod
    async def quote(
        self,
        *,
        chain_id: int,
        from_token_address: str,
        to_token_address: str,
        amount: int,
        slippage: str,
    ) -> Dict[str, Any]:
        """Raw quote response for ``amount`` base units"""
        pass

    @abstractmethod
    async def build_swap(
        self,
        *,
        chain_id: int,
        from_token_address: str,
        to_token_address: str,
        amount: int,
        slippage: str,
        user_wallet_address: str,
    ) -> Dict[str, Any]:
        """Raw build response: transaction plus quote echo"""
        pass


class ChainStateProvider(Provider):
    """Live chain reads used by the swap flow (never cached)"""

    @abstractmethod
    async def erc20_allowance(self, chain_id: int, token: str, owner: str, spender: str) -> int:
        pass

    @abstractmethod
    async def erc20_balance(self, chain_id: int, token: str, owner: str) -> int:
        pass

    @abstractmethod
    async def native_balance(self, chain_id: int, owner: str) -> int:
        pass

    @abstractmethod
    async def base_fee(self, chain_id: int) -> int:
        """Base fee per gas of the pending block, in wei"""
        pass
