import pytest
from fakeredis import FakeAsyncRedis

from s3browser.cache.keys import lock_key, meta_key, page_key, page_pattern
from s3browser.cache.manage import cache_stats, clear_prefix_cache, clear_s3_cache
from s3browser.cache.store import CacheStore


def test_key_names():
    assert page_key("bucket", "photos/2024/", 3) == "s3:page:bucket:photos/2024:3"
    assert page_key("bucket", "", 0) == "s3:page:bucket::0"
    assert meta_key("bucket", "/photos/") == "s3:meta:bucket:photos"
    assert lock_key("bucket", "photos") == "s3:lock:bucket:photos"
    assert page_pattern("bucket", "photos/") == "s3:page:bucket:photos:*"
    assert page_pattern("bucket", "[raw]*/") == r"s3:page:bucket:\[raw\]\*:*"


@pytest.mark.anyio
async def test_get_set(cache):
    assert await cache.healthy()
    assert await cache.get("k") is None
    assert await cache.exists("k") is False
    assert await cache.ttl("k") == -2

    assert await cache.set_with_ttl("k", b"value", 100)
    assert await cache.get("k") == b"value"
    assert await cache.exists("k") is True
    assert 0 < await cache.ttl("k") <= 100

    assert await cache.delete("k")
    assert await cache.get("k") is None
    assert await cache.delete()


@pytest.mark.anyio
async def test_batch_and_keys(cache, redis):
    entries = [(f"s3:page:b:p:{i}", f"page {i}") for i in range(3)] + [("s3:meta:b:p", "meta")]
    assert await cache.set_batch_with_ttl(entries, 60)
    assert await cache.get("s3:page:b:p:2") == b"page 2"
    assert 0 < await cache.ttl("s3:meta:b:p") <= 60
    assert await cache.keys_matching("s3:page:*") == {"s3:page:b:p:0", "s3:page:b:p:1", "s3:page:b:p:2"}
    assert await cache.keys_matching("s3:lock:*") == set()
    assert await cache.db_size() == 4

    await redis.set("no-expiry", "x")
    assert await cache.ttl("no-expiry") == -1


@pytest.mark.anyio
async def test_set_if_absent_and_compare_delete(cache):
    assert await cache.set_if_absent_with_ttl("lock", "token-1", 30)
    assert not await cache.set_if_absent_with_ttl("lock", "token-2", 30)
    assert await cache.get("lock") == b"token-1"

    assert not await cache.delete_if_equals("lock", "token-2")
    assert await cache.exists("lock")
    assert await cache.delete_if_equals("lock", "token-1")
    assert not await cache.exists("lock")
    assert not await cache.delete_if_equals("lock", "token-1")


@pytest.mark.anyio
async def test_disabled_cache():
    cache = CacheStore(None)
    assert not await cache.healthy()
    assert await cache.get("k") is None
    assert not await cache.set_with_ttl("k", b"v", 10)
    assert not await cache.set_batch_with_ttl([("k", b"v")], 10)
    assert await cache.exists("k") is None
    assert await cache.ttl("k") == -2
    assert await cache.keys_matching("*") == set()
    assert not await cache.set_if_absent_with_ttl("k", "v", 10)
    assert await cache.db_size() is None


@pytest.mark.anyio
async def test_unreachable_cache(redis_server):
    redis_server.connected = False
    cache = CacheStore(lambda: FakeAsyncRedis(server=redis_server))
    assert not await cache.healthy()
    assert await cache.get("k") is None
    assert not await cache.set_if_absent_with_ttl("k", "v", 10)

    # once redis is back, the connection is made on the next call
    redis_server.connected = True
    assert await cache.healthy()
    assert await cache.set_with_ttl("k", b"v", 10)
    await cache.close()


@pytest.mark.anyio
async def test_cache_errors_degrade(cache, redis_server):
    assert await cache.set_with_ttl("k", b"v", 10)
    redis_server.connected = False
    assert await cache.get("k") is None
    assert await cache.exists("k") is None
    assert not await cache.set_with_ttl("k", b"v", 10)
    assert await cache.keys_matching("*") == set()
    redis_server.connected = True
    assert await cache.get("k") == b"v"


@pytest.mark.anyio
async def test_manage(cache):
    await cache.set_batch_with_ttl(
        [
            ("s3:page:b:photos:0", "x"),
            ("s3:page:b:photos:1", "x"),
            ("s3:meta:b:photos", "x"),
            ("s3:page:b:photos/2024:0", "x"),
            ("s3:meta:b:photos/2024", "x"),
            ("s3:lock:b:docs", "x"),
            ("unrelated", "x"),
        ],
        60,
    )
    stats = await cache_stats(cache)
    assert stats is not None
    assert (stats.total_keys, stats.s3_page_keys, stats.s3_meta_keys, stats.s3_lock_keys) == (7, 3, 2, 1)

    assert await clear_prefix_cache(cache, "b", "/photos/")
    assert await cache.keys_matching("s3:*") == {"s3:page:b:photos/2024:0", "s3:meta:b:photos/2024", "s3:lock:b:docs"}

    assert await clear_s3_cache(cache)
    assert await cache.keys_matching("*") == {"s3:lock:b:docs", "unrelated"}


@pytest.mark.anyio
async def test_manage_disabled():
    cache = CacheStore(None)
    assert await cache_stats(cache) is None
    assert not await clear_s3_cache(cache)
    assert not await clear_prefix_cache(cache, "b", "photos")
