import asyncio
import time

import pytest

from s3browser.cache.lock import DistributedLock
from s3browser.cache.store import CacheStore

LOCK = "s3:lock:bucket:photos"


@pytest.mark.anyio
async def test_acquire_release(lock):
    token = await lock.acquire(LOCK)
    assert token
    assert await lock.acquire(LOCK) is None
    assert 0 < await lock.ttl(LOCK) <= 30

    assert await lock.release(LOCK, token)
    assert await lock.ttl(LOCK) == -2
    assert await lock.acquire(LOCK)


@pytest.mark.anyio
async def test_acquire_after_expiry(lock):
    assert await lock.acquire(LOCK, ttl_seconds=1)
    assert not await lock.acquire(LOCK, ttl_seconds=1)
    await asyncio.sleep(1.2)
    assert await lock.acquire(LOCK, ttl_seconds=1)


@pytest.mark.anyio
async def test_release_needs_owner_token(lock):
    """A holder whose lock expired must not release the lock of the next holder"""
    old_token = await lock.acquire(LOCK)
    await lock.release(LOCK)  # e.g. expiry, or an administrator clearing locks
    new_token = await lock.acquire(LOCK)
    assert new_token and new_token != old_token

    assert not await lock.release(LOCK, old_token)
    assert await lock.acquire(LOCK) is None
    assert await lock.release(LOCK, new_token)
    # releasing twice is harmless
    assert not await lock.release(LOCK, new_token)


@pytest.mark.anyio
async def test_wait_for_release(lock):
    assert await lock.wait_for_release(LOCK, max_wait_ms=100)

    token = await lock.acquire(LOCK)

    async def release_later():
        await asyncio.sleep(0.2)
        await lock.release(LOCK, token)

    task = asyncio.create_task(release_later())
    start = time.monotonic()
    assert await lock.wait_for_release(LOCK, max_wait_ms=5000)
    elapsed = time.monotonic() - start
    await task
    assert 0.15 < elapsed < 1


@pytest.mark.anyio
async def test_wait_for_release_timeout(lock):
    await lock.acquire(LOCK)
    start = time.monotonic()
    assert not await lock.wait_for_release(LOCK, max_wait_ms=300)
    elapsed = time.monotonic() - start
    assert 0.25 < elapsed < 1


@pytest.mark.anyio
async def test_lock_without_cache():
    lock = DistributedLock(CacheStore(None))
    assert await lock.acquire(LOCK) is None
    assert not await lock.wait_for_release(LOCK)


@pytest.mark.anyio
async def test_wait_gives_up_on_cache_error(lock, redis_server):
    await lock.acquire(LOCK)

    async def disconnect_later():
        await asyncio.sleep(0.1)
        redis_server.connected = False

    task = asyncio.create_task(disconnect_later())
    start = time.monotonic()
    assert not await lock.wait_for_release(LOCK, max_wait_ms=5000)
    await task
    assert time.monotonic() - start < 1
