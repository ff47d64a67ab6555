"""
Tests for the in-memory TTL cache.
"""

import pytest

from swapdesk.cache import TTLCache


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.mark.asyncio
async def test_get_and_expiry():
    clock = FakeClock()
    cache = TTLCache(default_ttl=10, clock=clock)

    await cache.set("quote", {"to": "1"})
    assert await cache.get("quote") == {"to": "1"}

    clock.advance(9)
    assert await cache.has("quote") is True

    clock.advance(1)
    assert await cache.get("quote") is None
    assert cache.size() == 0


@pytest.mark.asyncio
async def test_per_entry_ttl():
    clock = FakeClock()
    cache = TTLCache(default_ttl=300, clock=clock)

    await cache.set("short", 1, ttl=1)
    await cache.set("long", 2)
    clock.advance(5)

    assert await cache.get("short") is None
    assert await cache.get("long") == 2


@pytest.mark.asyncio
async def test_evicts_oldest_created_entry():
    cache = TTLCache(max_size=2, clock=FakeClock())

    await cache.set("a", 1)
    await cache.set("b", 2)
    # reading does not refresh creation order
    assert await cache.get("a") == 1
    await cache.set("c", 3)

    assert await cache.get("a") is None
    assert await cache.get("b") == 2
    assert await cache.get("c") == 3


@pytest.mark.asyncio
async def test_overwrite_moves_key_to_back():
    cache = TTLCache(max_size=2, clock=FakeClock())

    await cache.set("a", 1)
    await cache.set("b", 2)
    await cache.set("a", 10)
    await cache.set("c", 3)

    assert await cache.get("a") == 10
    assert await cache.get("b") is None


@pytest.mark.asyncio
async def test_delete_and_clear():
    cache = TTLCache(clock=FakeClock())
    await cache.set("a", 1)
    await cache.set("b", 2)

    assert await cache.delete("a") is True
    assert await cache.delete("a") is False
    await cache.clear()
    assert cache.size() == 0


def test_rejects_empty_capacity():
    with pytest.raises(ValueError):
        TTLCache(max_size=0)
