import pickle

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from restaurant_intel import cache as cache_module
from restaurant_intel.cache import (
    _MISS,
    CacheService,
    MemoryCache,
    RedisCache,
    build_cache_key,
    with_cache,
    with_cache_nullable,
)


def test_build_cache_key():
    assert build_cache_key("intelligence", "할매 국밥", "종로구") == "intelligence:할매_국밥:종로구"
    assert build_cache_key("hygiene", "ABC", None) == "hygiene:abc"


def test_memory_cache_expiry(monkeypatch):
    clock = [100.0]
    monkeypatch.setattr("restaurant_intel.cache.time.monotonic", lambda: clock[0])
    backend = MemoryCache()
    backend.set("k", "v", ttl=10)
    assert backend.get("k") == "v"

    clock[0] = 111.0
    assert backend.get("k") is _MISS
    assert len(backend) == 0


@pytest.mark.asyncio
async def test_nullable_caches_none_without_recompute():
    cache = CacheService(enabled=True)
    fetcher = AsyncMock(return_value=None)

    first = await with_cache_nullable(cache, "key", 60, fetcher)
    second = await with_cache_nullable(cache, "key", 60, fetcher)

    assert first is None
    assert second is None
    assert fetcher.await_count == 1


@pytest.mark.asyncio
async def test_nullable_returns_exact_cached_value():
    cache = CacheService(enabled=True)
    value = {"name": "할매국밥"}
    fetcher = AsyncMock(return_value=value)

    await with_cache_nullable(cache, "key", 60, fetcher)
    again = await with_cache_nullable(cache, "key", 60, fetcher)

    assert again is value
    assert fetcher.await_count == 1


@pytest.mark.asyncio
async def test_with_cache_stores_empty_collections():
    cache = CacheService(enabled=True)
    fetcher = AsyncMock(return_value=[])

    assert await with_cache(cache, "key", 60, fetcher) == []
    assert await with_cache(cache, "key", 60, fetcher) == []
    assert fetcher.await_count == 1
    assert cache.stats()["hits"] == 1


@pytest.mark.asyncio
async def test_disabled_cache_always_recomputes():
    cache = CacheService(enabled=False)
    fetcher = AsyncMock(return_value="fresh")

    await with_cache(cache, "key", 60, fetcher)
    await with_cache_nullable(cache, "key", 60, fetcher)

    assert fetcher.await_count == 2
    assert len(cache.backend) == 0


@pytest.mark.asyncio
async def test_no_cache_just_fetches():
    fetcher = AsyncMock(return_value=1)
    assert await with_cache(None, "key", 60, fetcher) == 1
    assert await with_cache_nullable(None, "key", 60, fetcher) == 1


@pytest.mark.asyncio
async def test_backend_errors_degrade_to_miss():
    """A broken backend is logged and ignored; the caller still gets its value."""
    backend = MagicMock()
    backend.get.side_effect = RuntimeError("backend down")
    backend.set.side_effect = RuntimeError("backend down")
    cache = CacheService(backend=backend, enabled=True)
    fetcher = AsyncMock(return_value="value")

    assert await with_cache(cache, "key", 60, fetcher) == "value"
    assert await with_cache_nullable(cache, "key", 60, fetcher) == "value"
    await cache.delete("key")
    assert fetcher.await_count == 2


def _redis_client():
    """MagicMock redis client backed by a dict."""
    store = {}
    client = MagicMock()
    client.get.side_effect = lambda key: store.get(key)
    client.set.side_effect = lambda key, value, ex=None: store.__setitem__(key, value)
    client.delete.side_effect = lambda *keys: sum(1 for k in keys if store.pop(k, None) is not None)
    client.scan_iter.side_effect = lambda match: [k for k in list(store) if k.startswith(match.rstrip("*"))]
    return client, store


def test_redis_cache_pickles_with_expiry():
    client, store = _redis_client()
    backend = RedisCache(client, prefix="ri:")

    backend.set("hygiene:할매국밥", {"value": None}, ttl=3600)

    client.set.assert_called_once_with("ri:hygiene:할매국밥", pickle.dumps({"value": None}), ex=3600)
    assert backend.get("hygiene:할매국밥") == {"value": None}
    assert backend.get("missing") is _MISS

    backend.set("other", [1, 2], ttl=0.5)
    assert client.set.call_args.kwargs["ex"] == 1
    assert len(backend) == 2

    store["foreign:key"] = b"x"
    backend.clear()
    assert list(store) == ["foreign:key"]


@pytest.mark.asyncio
async def test_cache_service_over_redis_round_trip():
    client, _ = _redis_client()
    cache = CacheService(RedisCache(client), enabled=True)
    fetcher = AsyncMock(return_value=None)

    assert await with_cache_nullable(cache, "k", 60, fetcher) is None
    assert await with_cache_nullable(cache, "k", 60, fetcher) is None
    fetcher.assert_awaited_once()


def test_backend_selection_from_config():
    client = MagicMock()
    with patch.object(cache_module, "_client", None), \
            patch.object(cache_module, "REDIS_URL", "redis://localhost:6379/0"), \
            patch.object(cache_module.redis.Redis, "from_url", return_value=client) as from_url:
        service = CacheService(enabled=True)
    assert isinstance(service.backend, RedisCache)
    assert service.backend.client is client
    from_url.assert_called_once_with("redis://localhost:6379/0")

    with patch.object(cache_module, "REDIS_URL", None), patch.object(cache_module, "REDIS_HOST", None):
        assert isinstance(CacheService().backend, MemoryCache)


@pytest.mark.asyncio
async def test_redis_outage_degrades_to_miss():
    client = MagicMock()
    client.get.side_effect = ConnectionError("refused")
    client.scan_iter.side_effect = ConnectionError("refused")
    cache = CacheService(RedisCache(client), enabled=True)

    assert await cache.get("k") is None
    assert cache.stats()["size"] is None
