"""
Tests for unlock grants and the cache backends behind them.
"""
import asyncio

from shortlink_app.cache.factory import CacheBackend, CacheFactory
from shortlink_app.cache.strategies import InMemoryCache, NullCache
from shortlink_app.services.unlock import UnlockGrants


class TestInMemoryCache:

    def test_set_and_exists(self):
        cache = InMemoryCache()

        async def scenario():
            await cache.set("k", "v", ttl=60)
            return await cache.exists("k"), await cache.exists("other")

        assert asyncio.run(scenario()) == (True, False)

    def test_entries_expire(self):
        cache = InMemoryCache()

        async def scenario():
            await cache.set("k", "v", ttl=0.05)
            await asyncio.sleep(0.1)
            return await cache.exists("k")

        assert asyncio.run(scenario()) is False


class TestCacheFactory:

    def test_singleton(self):
        first = CacheFactory.create(CacheBackend.MEMORY)
        assert CacheFactory.create(CacheBackend.MEMORY) is first

    def test_null_backend(self):
        assert isinstance(CacheFactory.create(CacheBackend.NULL), NullCache)


class TestUnlockGrants:

    def test_grant_is_per_token_and_slug(self):
        grants = UnlockGrants(InMemoryCache(), ttl=60)
        token = grants.new_token()

        async def scenario():
            await grants.grant(token, "secret")
            return (
                await grants.is_unlocked(token, "secret"),
                await grants.is_unlocked(token, "other"),
                await grants.is_unlocked("someone-else", "secret"),
                await grants.is_unlocked(None, "secret"),
            )

        assert asyncio.run(scenario()) == (True, False, False, False)

    def test_disabled_with_zero_ttl(self):
        grants = UnlockGrants(InMemoryCache(), ttl=0)

        async def scenario():
            granted = await grants.grant("token", "secret")
            return granted, await grants.is_unlocked("token", "secret")

        assert grants.enabled is False
        assert asyncio.run(scenario()) == (False, False)

    def test_null_cache_never_unlocks(self):
        grants = UnlockGrants(NullCache(), ttl=60)

        async def scenario():
            await grants.grant("token", "secret")
            return await grants.is_unlocked("token", "secret")

        assert asyncio.run(scenario()) is False

    def test_tokens_are_unique(self):
        assert len({UnlockGrants.new_token() for _ in range(50)}) == 50
