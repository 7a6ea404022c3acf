import asyncio

import pytest

from wordrelay.cache import DedupCache
from wordrelay.errors import RequestError


def test_lookup_unknown_text_returns_none():
    cache = DedupCache()
    assert cache.lookup("Hello") is None
    assert "Hello" not in cache


def test_reserve_then_resolve_shares_one_future():
    async def scenario():
        cache = DedupCache()
        future = cache.reserve("Hello")
        assert cache.lookup("Hello") is future
        assert not future.done()
        cache.resolve("Hello", ["Hallo"])
        return await cache.lookup("Hello")

    assert asyncio.run(scenario()) == ["Hallo"]


def test_resolve_without_pending_entry_is_silent():
    async def scenario():
        cache = DedupCache()
        cache.resolve("never reserved", ["ignored"])
        future = cache.reserve("Hello")
        cache.resolve("Hello", ["first"])
        cache.resolve("Hello", ["second"])
        return len(cache), await future

    assert asyncio.run(scenario()) == (1, ["first"])


def test_reserve_twice_is_rejected():
    async def scenario():
        cache = DedupCache()
        cache.reserve("Hello")
        cache.reserve("Hello")

    with pytest.raises(KeyError):
        asyncio.run(scenario())


def test_fail_rejects_pending_future_only():
    async def scenario():
        cache = DedupCache()
        pending = cache.reserve("broken")
        settled = cache.reserve("fine")
        cache.resolve("fine", ["ok"])
        cache.fail("broken", RequestError("boom"))
        cache.fail("fine", RequestError("late"))
        assert await settled == ["ok"]
        await pending

    with pytest.raises(RequestError, match="boom"):
        asyncio.run(scenario())
