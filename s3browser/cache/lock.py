import asyncio
import logging
import secrets
import time

from s3browser.cache.store import CacheStore

LOCK_TTL_SECONDS = 30
LOCK_WAIT_MS = 10_000
POLL_INTERVAL_MS = 100


class DistributedLock:
    """
    A lock shared by all processes using the same cache, built on SET NX EX.

    Each acquisition stores a random token as the lock value, and release with that token only
    deletes the key if it still holds the token. A holder whose lock expired therefore cannot
    release a lock that was since acquired by someone else.
    """

    def __init__(self, cache: CacheStore, poll_interval_ms: int = POLL_INTERVAL_MS):
        self.cache = cache
        self.poll_interval_ms = poll_interval_ms

    async def acquire(self, lock_key: str, ttl_seconds: int = LOCK_TTL_SECONDS) -> str | None:
        """Single, non-blocking attempt. Returns the ownership token if we got the lock, None otherwise."""
        token = secrets.token_hex(16)
        if await self.cache.set_if_absent_with_ttl(lock_key, token, ttl_seconds):
            return token
        return None

    async def release(self, lock_key: str, token: str | None = None) -> bool:
        """
        Release the lock. With a token, only release it if we still hold it.
        Without a token the key is removed unconditionally (use for administration only).
        Releasing an expired lock is harmless.
        """
        if token is None:
            return await self.cache.delete(lock_key)
        released = await self.cache.delete_if_equals(lock_key, token)
        if not released:
            logging.warning(f"Lock {lock_key} was no longer held by us on release (expired?)")
        return released

    async def wait_for_release(self, lock_key: str, max_wait_ms: int = LOCK_WAIT_MS) -> bool:
        """
        Poll until the lock is gone. Returns True as soon as it is released (or expired),
        False if it is still held after max_wait_ms or if the cache cannot be queried.
        """
        start = time.monotonic()
        deadline = start + max_wait_ms / 1000
        polls = 0
        logging.debug(f"Waiting for lock release: {lock_key}, max wait: {max_wait_ms}ms")
        while True:
            exists = await self.cache.exists(lock_key)
            if exists is None:
                logging.warning(f"Cannot check lock {lock_key}, giving up waiting")
                return False
            if not exists:
                logging.debug(f"Lock {lock_key} released after {(time.monotonic() - start) * 1000:.0f}ms and {polls} polls")
                return True
            if time.monotonic() >= deadline:
                break
            polls += 1
            await asyncio.sleep(min(self.poll_interval_ms / 1000, max(0.0, deadline - time.monotonic())))
        logging.warning(f"Lock wait timeout for {lock_key} after {max_wait_ms}ms and {polls} polls")
        return False

    async def ttl(self, lock_key: str) -> int:
        return await self.cache.ttl(lock_key)
