"""
Inspect and clear cached listings. Besides the cache endpoints and the CLI, the pagination engine
uses this to purge a prefix that was cached with a different page size.
"""

import logging

from s3browser.cache.keys import LOCK_PATTERN, META_PATTERN, PAGE_PATTERN, meta_key, page_pattern
from s3browser.cache.store import CacheStore
from s3browser.models import CacheStats


async def cache_stats(cache: CacheStore) -> CacheStats | None:
    """Count the cached pages, metadata and locks. Returns None if the cache is not available."""
    if not await cache.healthy():
        return None
    total = await cache.db_size()
    if total is None:
        return None
    return CacheStats(
        total_keys=total,
        s3_page_keys=len(await cache.keys_matching(PAGE_PATTERN)),
        s3_meta_keys=len(await cache.keys_matching(META_PATTERN)),
        s3_lock_keys=len(await cache.keys_matching(LOCK_PATTERN)),
    )


async def clear_s3_cache(cache: CacheStore) -> bool:
    """Delete all cached pages and metadata for all buckets. Locks are left alone."""
    if not await cache.healthy():
        return False
    keys = await cache.keys_matching(PAGE_PATTERN) | await cache.keys_matching(META_PATTERN)
    logging.info(f"Clearing {len(keys)} cached listing keys")
    return await cache.delete(*keys)


async def clear_prefix_cache(cache: CacheStore, bucket: str, prefix: str) -> bool:
    """Delete all cached pages and the metadata of one prefix"""
    if not await cache.healthy():
        return False
    keys = await cache.keys_matching(page_pattern(bucket, prefix))
    keys.add(meta_key(bucket, prefix))
    logging.info(f"Clearing cache for {bucket}:{prefix!r} ({len(keys)} keys)")
    return await cache.delete(*keys)
