import asyncio
import time
from typing import Any, Callable, Dict, Hashable, Optional
from dataclasses import dataclass


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """
    Simple in-memory TTL cache.

    Over capacity, the least recently *created* entry is evicted: setting a
    key again moves it to the back, reading it does not.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        # dict preserves insertion order, which doubles as creation order
        self._cache: Dict[Hashable, CacheEntry] = {}
        self._lock = asyncio.Lock()

    def _expired(self, key: Hashable, now: float) -> bool:
        entry = self._cache.get(key)
        if entry is None:
            return True
        if now >= entry.expires_at:
            del self._cache[key]
            return True
        return False

    async def get(self, key: Hashable) -> Optional[Any]:
        async with self._lock:
            if self._expired(key, self._clock()):
                return None
            return self._cache[key].value

    async def has(self, key: Hashable) -> bool:
        async with self._lock:
            return not self._expired(key, self._clock())

    async def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            ttl = self.default_ttl if ttl is None else ttl
            self._cache.pop(key, None)
            self._cache[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

            while len(self._cache) > self.max_size:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]

    async def delete(self, key: Hashable) -> bool:
        async with self._lock:
            return self._cache.pop(key, None) is not None

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()

    def size(self) -> int:
        return len(self._cache)
