"""
TTL cache shared by the providers and the resolver.

`with_cache` stores whatever the fetcher returns, empty results included.
`with_cache_nullable` wraps the value as {"value": ...} so a cached None can be
told apart from a miss. Backend failures are logged and treated as misses.

The backend is Redis when REDIS_URL or REDIS_HOST is configured, else an
in-process MemoryCache.
"""
import pickle
import re
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, TypeVar

import redis
from loguru import logger

from restaurant_intel.config import (
    CACHE_ENABLED,
    DEFAULT_TTL,
    REDIS_DB,
    REDIS_HOST,
    REDIS_KEY_PREFIX,
    REDIS_PASSWORD,
    REDIS_PORT,
    REDIS_URL,
)

T = TypeVar("T")

_MISS = object()

# Module-level singleton; created on the first call to get_redis()
_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """Return the singleton Redis client, creating it on first call."""
    global _client
    if _client is None:
        if REDIS_URL:
            _client = redis.Redis.from_url(REDIS_URL)
        else:
            kwargs = {"host": REDIS_HOST, "port": REDIS_PORT, "db": REDIS_DB}
            if REDIS_PASSWORD:
                kwargs["password"] = REDIS_PASSWORD
            _client = redis.Redis(**kwargs)
    return _client


class MemoryCache:
    """In-process key/value store with per-entry expiry."""

    def __init__(self):
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def get(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISS
        value, expires_at = entry
        if time.monotonic() > expires_at:
            del self._entries[key]
            return _MISS
        return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        self._entries[key] = (value, time.monotonic() + ttl)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class RedisCache:
    """
    Shared key/value store on redis-py. Values are pickled; expiry is left to
    Redis. Every key carries a prefix so `clear` only touches this cache.
    """

    def __init__(self, client: Optional[redis.Redis] = None, prefix: str = REDIS_KEY_PREFIX):
        self.client = client if client is not None else get_redis()
        self.prefix = prefix

    def get(self, key: str) -> Any:
        raw = self.client.get(self.prefix + key)
        if raw is None:
            return _MISS
        return pickle.loads(raw)

    def set(self, key: str, value: Any, ttl: float) -> None:
        self.client.set(self.prefix + key, pickle.dumps(value), ex=max(1, int(ttl)))

    def delete(self, key: str) -> None:
        self.client.delete(self.prefix + key)

    def _keys(self) -> list:
        return list(self.client.scan_iter(match=f"{self.prefix}*"))

    def clear(self) -> None:
        keys = self._keys()
        if keys:
            self.client.delete(*keys)

    def __len__(self) -> int:
        return len(self._keys())


def default_backend():
    if REDIS_URL or REDIS_HOST:
        logger.info("Using Redis cache backend")
        return RedisCache()
    return MemoryCache()


class CacheService:
    """
    Async cache facade. Reads return None on a miss, on expiry, when the cache
    is disabled, and when the backend raises.
    """

    def __init__(self, backend=None, enabled: bool = CACHE_ENABLED):
        self.backend = backend if backend is not None else default_backend()
        self.enabled = enabled
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Any:
        if not self.enabled:
            return None
        try:
            value = self.backend.get(key)
        except Exception as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            self.misses += 1
            return None
        if value is _MISS:
            self.misses += 1
            return None
        self.hits += 1
        return value

    async def set(self, key: str, value: Any, ttl: float = DEFAULT_TTL) -> None:
        if not self.enabled:
            return
        try:
            self.backend.set(key, value, ttl)
        except Exception as e:
            logger.warning(f"Cache set error for key {key}: {e}")

    async def delete(self, key: str) -> None:
        if not self.enabled:
            return
        try:
            self.backend.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete error for key {key}: {e}")

    def stats(self) -> dict:
        total = self.hits + self.misses
        try:
            size = len(self.backend)
        except Exception as e:
            logger.warning(f"Cache size error: {e}")
            size = None
        return {
            "size": size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 1) if total > 0 else 0.0,
        }

    def clear(self) -> None:
        self.backend.clear()
        self.hits = 0
        self.misses = 0


def build_cache_key(prefix: str, *parts: Optional[str]) -> str:
    """Build "prefix:part1:part2" with lowercased, underscore-joined parts; empty parts are dropped."""
    cleaned = [re.sub(r"\s+", "_", str(p).lower()) for p in parts if p]
    return ":".join([prefix, *cleaned])


async def with_cache(
    cache: Optional[CacheService],
    key: str,
    ttl: float,
    fetcher: Callable[[], Awaitable[T]],
) -> T:
    """Return the cached value for `key`, or run `fetcher` and cache its result."""
    if cache is None:
        return await fetcher()

    cached = await cache.get(key)
    if cached is not None:
        return cached

    result = await fetcher()
    await cache.set(key, result, ttl)
    return result


async def with_cache_nullable(
    cache: Optional[CacheService],
    key: str,
    ttl: float,
    fetcher: Callable[[], Awaitable[Optional[T]]],
) -> Optional[T]:
    """Like `with_cache`, but a None result is cached as well."""
    if cache is None:
        return await fetcher()

    cached = await cache.get(key)
    if isinstance(cached, dict) and "value" in cached:
        return cached["value"]

    result = await fetcher()
    await cache.set(key, {"value": result}, ttl)
    return result
