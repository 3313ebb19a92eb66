"""
Paginated prefix listings, cached in redis.

Listing a prefix means enumerating everything under it, which is slow for large prefixes.
So the first request for a (prefix, page size) enumerates once, splits the files into pages and
caches all pages together with the prefix metadata (counts and folders). Subsequent requests for any
page of that prefix are served from the cache.

Only one request per prefix rebuilds at a time: the rebuilder holds a distributed lock, and other
requests wait for the lock to disappear and then read the fresh cache. If waiting takes too long, or
the cache is unusable, requests list the store directly and do not write anything to the cache.
"""

import logging
import math
from datetime import UTC, datetime

from pydantic import ValidationError

from s3browser.cache.keys import lock_key, meta_key, page_key
from s3browser.cache.lock import LOCK_TTL_SECONDS, LOCK_WAIT_MS, DistributedLock
from s3browser.cache.manage import clear_prefix_cache
from s3browser.cache.store import CacheStore
from s3browser.errors import LockTimeout
from s3browser.models import ObjectEntry, PageData, PrefixMetadata, S3ListResult
from s3browser.objectstorage.s3bucket import ObjectStore

CACHE_TTL_SECONDS = 24 * 60 * 60
PAGE_SIZE = 50


def total_pages(total_objects: int, page_size: int) -> int:
    return math.ceil(total_objects / page_size)


def page_slice(objects: list[ObjectEntry], page_index: int, page_size: int) -> list[ObjectEntry]:
    start = page_index * page_size
    return objects[start : start + page_size]


def paginate(objects: list[ObjectEntry], page_size: int) -> list[PageData]:
    """Split objects into contiguous pages of page_size, the last page holding the remainder"""
    return [
        PageData(objects=page_slice(objects, i, page_size), page_index=i, page_size=page_size)
        for i in range(total_pages(len(objects), page_size))
    ]


class PaginationCache:
    def __init__(
        self,
        store: ObjectStore,
        cache: CacheStore,
        lock: DistributedLock | None = None,
        cache_ttl_seconds: int = CACHE_TTL_SECONDS,
        lock_ttl_seconds: int = LOCK_TTL_SECONDS,
        lock_wait_ms: int = LOCK_WAIT_MS,
        page_size: int = PAGE_SIZE,
    ):
        self.store = store
        self.cache = cache
        self.lock = lock or DistributedLock(cache)
        self.cache_ttl_seconds = cache_ttl_seconds
        self.lock_ttl_seconds = lock_ttl_seconds
        self.lock_wait_ms = lock_wait_ms
        self.page_size = page_size

    @property
    def bucket(self) -> str:
        return self.store.bucket

    async def list_objects(self, prefix: str = "", page: int = 1, page_size: int | None = None) -> S3ListResult:
        """
        List one page of files under prefix, plus all folders and the totals.

        :param prefix: The prefix relative to the configured root prefix
        :param page: 1-based page number. Pages beyond the last page are empty (but report correct totals)
        :param page_size: Files per page. A different page size than the cached one invalidates the cache.
                          Defaults to the page size this engine was configured with
        """
        if page_size is None:
            page_size = self.page_size
        if page < 1 or page_size < 1:
            raise ValueError(f"page and page_size must be positive, got page={page}, page_size={page_size}")

        if not await self.cache.healthy():
            return await self._list_direct(prefix, page, page_size)

        metadata = await self._read_metadata(prefix, page_size)
        if metadata is None:
            key = lock_key(self.bucket, prefix)
            token = await self.lock.acquire(key, self.lock_ttl_seconds)
            if token:
                try:
                    # Someone else may have finished a rebuild between our miss and getting the lock
                    metadata = await self._read_metadata(prefix, page_size)
                    if metadata is None:
                        metadata, pages = await self._rebuild(prefix, page_size)
                        objects = pages[page - 1].objects if page <= len(pages) else []
                        return self._result(metadata, page, objects)
                finally:
                    await self.lock.release(key, token)
            else:
                try:
                    metadata = await self._wait_for_rebuild(prefix, page_size)
                except LockTimeout as e:
                    logging.warning(f"{e}, listing directly")
                    return await self._list_direct(prefix, page, page_size)
                if metadata is None:
                    logging.warning(f"No cached listing for {self.bucket}:{prefix!r} after rebuild, listing directly")
                    return await self._list_direct(prefix, page, page_size)

        return await self._read_page(prefix, page, metadata)

    async def _wait_for_rebuild(self, prefix: str, page_size: int) -> PrefixMetadata | None:
        """Wait until the rebuilding request releases the lock, then read the metadata once"""
        if not await self.lock.wait_for_release(lock_key(self.bucket, prefix), self.lock_wait_ms):
            raise LockTimeout(f"Rebuild of {self.bucket}:{prefix!r} not finished within {self.lock_wait_ms}ms")
        return await self._read_metadata(prefix, page_size)

    async def _read_metadata(self, prefix: str, page_size: int) -> PrefixMetadata | None:
        """
        Return the cached metadata if it exists and was built for this page size.
        Metadata for another page size is purged together with its pages.
        """
        raw = await self.cache.get(meta_key(self.bucket, prefix))
        if raw is None:
            return None
        try:
            metadata = PrefixMetadata.model_validate_json(raw)
        except ValidationError as e:
            logging.warning(f"Ignoring invalid cached metadata for {self.bucket}:{prefix!r}: {e}")
            return None
        if metadata.page_size != page_size:
            logging.info(
                f"Cached listing of {self.bucket}:{prefix!r} has page size {metadata.page_size}, "
                f"requested {page_size}: clearing"
            )
            await clear_prefix_cache(self.cache, self.bucket, prefix)
            return None
        return metadata

    async def _rebuild(self, prefix: str, page_size: int) -> tuple[PrefixMetadata, list[PageData]]:
        """Enumerate the prefix and write all pages and the metadata. Call this only while holding the lock."""
        logging.info(f"Rebuilding cached listing of {self.bucket}:{prefix!r} with page size {page_size}")
        objects, folders = await self.store.list_full_prefix(self.store.full_prefix(prefix))
        pages = paginate(objects, page_size)
        metadata = PrefixMetadata(
            total_object_count=len(objects),
            total_folder_count=len(folders),
            total_pages=len(pages),
            page_size=page_size,
            all_folders=folders,
            root_prefix=self.store.root_prefix,
            cached_at=datetime.now(UTC),
        )

        entries = [(page_key(self.bucket, prefix, p.page_index), p.model_dump_json(by_alias=True)) for p in pages]
        # metadata goes last, so a reader that sees it can expect the pages to be there as well
        entries.append((meta_key(self.bucket, prefix), metadata.model_dump_json(by_alias=True)))
        if not await self.cache.set_batch_with_ttl(entries, self.cache_ttl_seconds):
            logging.warning(f"Could not cache listing of {self.bucket}:{prefix!r}")
        return metadata, pages

    async def _read_page(self, prefix: str, page: int, metadata: PrefixMetadata) -> S3ListResult:
        if page > metadata.total_pages:
            return self._result(metadata, page, [])

        raw = await self.cache.get(page_key(self.bucket, prefix, page - 1))
        page_data = None
        if raw is not None:
            try:
                page_data = PageData.model_validate_json(raw)
            except ValidationError as e:
                logging.warning(f"Ignoring invalid cached page {page} of {self.bucket}:{prefix!r}: {e}")
        if page_data is None:
            # Can happen if we read the metadata while the pages were still being written or just expired
            logging.warning(f"Page {page} of {self.bucket}:{prefix!r} missing from cache, listing directly")
            return await self._list_direct(prefix, page, metadata.page_size, metadata=metadata)
        return self._result(metadata, page, page_data.objects)

    async def _list_direct(
        self, prefix: str, page: int, page_size: int, metadata: PrefixMetadata | None = None
    ) -> S3ListResult:
        """
        List without the cache. Nothing is written to the cache from here.
        If metadata is given, its folders and counts are used and only the objects come from the listing.
        """
        objects, folders = await self.store.list_full_prefix(self.store.full_prefix(prefix))
        page_objects = page_slice(objects, page - 1, page_size)
        if metadata is not None:
            return self._result(metadata, page, page_objects)
        return S3ListResult(
            objects=page_objects,
            folders=folders,
            total_objects=len(objects),
            total_folders=len(folders),
            current_page=page,
            total_pages=total_pages(len(objects), page_size),
            page_size=page_size,
            root_prefix=self.store.root_prefix,
        )

    def _result(self, metadata: PrefixMetadata, page: int, objects: list[ObjectEntry]) -> S3ListResult:
        return S3ListResult(
            objects=objects,
            folders=metadata.all_folders,
            total_objects=metadata.total_object_count,
            total_folders=metadata.total_folder_count,
            current_page=page,
            total_pages=metadata.total_pages,
            page_size=metadata.page_size,
            root_prefix=metadata.root_prefix,
        )
