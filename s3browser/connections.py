import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, cast

from s3browser.cache.lock import DistributedLock
from s3browser.cache.store import CacheStore
from s3browser.config import Settings, check_settings, get_settings
from s3browser.objectstorage.s3bucket import ObjectStore
from s3browser.objectstorage.s3client import s3_client
from s3browser.pagination import PaginationCache


class BrowserConnections:
    """The shared handles used to answer requests. Built once by browser_connections()."""

    store: ObjectStore
    cache: CacheStore
    listing: PaginationCache

    def __init__(self, store: ObjectStore, cache: CacheStore, listing: PaginationCache):
        self.store = store
        self.cache = cache
        self.listing = listing

    @property
    def bucket(self) -> str:
        return self.store.bucket


def pagination_cache(store: ObjectStore, cache: CacheStore, settings: Settings) -> PaginationCache:
    return PaginationCache(
        store,
        cache,
        lock=DistributedLock(cache, poll_interval_ms=settings.lock_poll_ms),
        cache_ttl_seconds=settings.cache_ttl_seconds,
        lock_ttl_seconds=settings.lock_ttl_seconds,
        lock_wait_ms=settings.lock_wait_ms,
        page_size=settings.page_size,
    )


@asynccontextmanager
async def browser_connections(settings: Settings | None = None) -> AsyncGenerator[BrowserConnections, None]:
    """
    The main context manager to create and close the S3 client and the cache.
    Use this once (and only once):
        - For running the server: in the FastAPI lifespan
        - For CLI commands: within the CLI command
    Tests build BrowserConnections themselves from fake clients.
    """
    settings = check_settings(settings or get_settings())
    bucket = cast(str, settings.s3_bucket)
    logging.debug(f"Connecting with S3 at {settings.s3_host or 'AWS'}, bucket {bucket}")

    cache = CacheStore.from_settings(settings)
    try:
        async with s3_client(settings) as client:
            store = ObjectStore(client, bucket, settings.s3_prefix)
            yield BrowserConnections(store=store, cache=cache, listing=pagination_cache(store, cache, settings))
    finally:
        await cache.close()
