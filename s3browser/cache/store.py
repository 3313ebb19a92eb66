"""
Key-value cache on top of redis.

Every operation degrades to a harmless result (None, False, an empty set) when caching is disabled
or redis cannot be reached, so callers can treat an absent cache as a cache that always misses.
Use healthy() to check up front whether the cache is usable at all.
"""

import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Iterable

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from s3browser.config import Settings
from s3browser.errors import CacheUnavailable

RedisFactory = Callable[[], Redis]

SCAN_BATCH_SIZE = 1000


def degrades_to(default: Any):
    """
    Decorator for CacheStore operations. The operation receives a connected client after self,
    and the call returns `default` (or `default()` if it is callable) if the cache is unavailable
    or the redis command fails.
    """

    def fallback():
        return default() if callable(default) else default

    def decorator(func):
        @wraps(func)
        async def wrapper(self: "CacheStore", *args, **kwargs):
            try:
                client = await self._client()
            except CacheUnavailable:
                return fallback()
            try:
                return await func(self, client, *args, **kwargs)
            except (RedisError, OSError) as e:
                logging.warning(f"Cache operation {func.__name__} failed: {e!r}")
                return fallback()

        return wrapper

    return decorator


class CacheStore:
    def __init__(self, factory: RedisFactory | None):
        """
        :param factory: Creates the redis client on first use. None means caching is disabled.
        """
        self._factory = factory
        self._redis: Redis | None = None
        self._connect_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "CacheStore":
        if not settings.redis_enabled:
            return cls(None)

        def factory() -> Redis:
            return Redis(
                host=settings.redis_host,
                port=settings.redis_port,
                password=settings.redis_password,
                db=settings.redis_db,
                socket_connect_timeout=2,
                socket_timeout=5,
            )

        return cls(factory)

    async def _client(self) -> Redis:
        if self._factory is None:
            raise CacheUnavailable("Caching is disabled")
        if self._redis is not None:
            return self._redis
        async with self._connect_lock:
            if self._redis is None:
                client = self._factory()
                try:
                    await client.ping()
                except (RedisError, OSError) as e:
                    await client.aclose()
                    logging.warning(f"Cannot connect to redis, continuing without cache: {e!r}")
                    raise CacheUnavailable(str(e)) from e
                logging.info("Connected to redis")
                self._redis = client
        return self._redis

    async def healthy(self) -> bool:
        try:
            await self._client()
        except CacheUnavailable:
            return False
        return True

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    @degrades_to(None)
    async def get(self, client: Redis, key: str) -> bytes | None:
        return await client.get(key)

    @degrades_to(False)
    async def set_with_ttl(self, client: Redis, key: str, value: bytes | str, ttl_seconds: int) -> bool:
        await client.set(key, value, ex=ttl_seconds)
        return True

    @degrades_to(False)
    async def set_batch_with_ttl(self, client: Redis, entries: Iterable[tuple[str, bytes | str]], ttl_seconds: int) -> bool:
        """
        Write all entries in one MULTI/EXEC pipeline, in the given order.
        If this fails halfway, the caller should treat the written entries as unreliable.
        """
        async with client.pipeline(transaction=True) as pipe:
            for key, value in entries:
                pipe.set(key, value, ex=ttl_seconds)
            await pipe.execute()
        return True

    @degrades_to(False)
    async def delete(self, client: Redis, *keys: str) -> bool:
        if keys:
            await client.delete(*keys)
        return True

    @degrades_to(None)
    async def exists(self, client: Redis, key: str) -> bool | None:
        """True or False if the key exists or not, None if we could not ask redis"""
        return bool(await client.exists(key))

    @degrades_to(-2)
    async def ttl(self, client: Redis, key: str) -> int:
        """Remaining time to live in seconds, -1 if the key has no expiry, -2 if it does not exist"""
        return await client.ttl(key)

    @degrades_to(set)
    async def keys_matching(self, client: Redis, pattern: str) -> set[str]:
        keys = set()
        async for key in client.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
            keys.add(key.decode("utf-8") if isinstance(key, bytes) else key)
        return keys

    @degrades_to(False)
    async def set_if_absent_with_ttl(self, client: Redis, key: str, value: bytes | str, ttl_seconds: int) -> bool:
        return bool(await client.set(key, value, nx=True, ex=ttl_seconds))

    @degrades_to(False)
    async def delete_if_equals(self, client: Redis, key: str, value: bytes | str) -> bool:
        """Delete key only if it currently holds value. Returns whether it was deleted."""
        expected = value.encode("utf-8") if isinstance(value, str) else value
        async with client.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if await pipe.get(key) != expected:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
            except WatchError:
                # Changed between GET and EXEC, so it is no longer ours to delete
                return False
        return True

    @degrades_to(None)
    async def db_size(self, client: Redis) -> int | None:
        return await client.dbsize()
