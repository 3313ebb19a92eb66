import asyncio
from datetime import UTC, datetime

import pytest
from botocore.exceptions import ClientError
from fakeredis import FakeAsyncRedis, FakeServer
from httpx import ASGITransport, AsyncClient

from s3browser import api
from s3browser.api.common import get_connections
from s3browser.cache.lock import DistributedLock
from s3browser.cache.store import CacheStore
from s3browser.connections import BrowserConnections
from s3browser.objectstorage.s3bucket import ObjectStore
from s3browser.pagination import PaginationCache

BUCKET = "unittest-bucket"
MODIFIED = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def client_error(code: str, status: int, operation: str = "ListObjectsV2") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}, "ResponseMetadata": {"HTTPStatusCode": status}}, operation)


class FakeS3Client:
    """
    In-memory stand-in for the aiobotocore S3 client, implementing the calls ObjectStore makes.
    list_objects_v2 follows S3 semantics for Prefix, Delimiter, MaxKeys and continuation tokens,
    and counts its calls so tests can check how often the store was enumerated.
    """

    def __init__(self, delay: float = 0):
        self.objects: dict[str, int] = {}
        self.denied: set[str] = set()
        self.delay = delay
        self.fail_with: Exception | None = None
        self.list_calls = 0

    def add(self, *keys: str, size: int = 100):
        for key in keys:
            self.objects[key] = size

    async def list_objects_v2(self, Bucket, Prefix="", Delimiter=None, MaxKeys=1000, ContinuationToken=None):
        self.list_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

        entries: list[tuple[str, bool]] = []
        common_prefixes: set[str] = set()
        for key in sorted(self.objects):
            if not key.startswith(Prefix):
                continue
            rest = key[len(Prefix) :]
            if Delimiter and Delimiter in rest:
                common_prefix = Prefix + rest[: rest.index(Delimiter) + 1]
                if common_prefix not in common_prefixes:
                    common_prefixes.add(common_prefix)
                    entries.append((common_prefix, True))
            else:
                entries.append((key, False))

        start = int(ContinuationToken or 0)
        batch = entries[start : start + MaxKeys]
        res: dict = {"IsTruncated": start + MaxKeys < len(entries), "KeyCount": len(batch)}
        contents = [{"Key": k, "Size": self.objects[k], "LastModified": MODIFIED} for k, is_prefix in batch if not is_prefix]
        if contents:
            res["Contents"] = contents
        prefixes = [{"Prefix": k} for k, is_prefix in batch if is_prefix]
        if prefixes:
            res["CommonPrefixes"] = prefixes
        if res["IsTruncated"]:
            res["NextContinuationToken"] = str(start + MaxKeys)
        return res

    async def head_object(self, Bucket, Key):
        if Key in self.denied:
            raise client_error("403", 403, "HeadObject")
        if Key not in self.objects:
            raise client_error("404", 404, "HeadObject")
        return {"ContentLength": self.objects[Key], "LastModified": MODIFIED, "ContentType": "image/jpeg"}

    async def generate_presigned_url(self, ClientMethod, Params, ExpiresIn=3600):
        return f"https://s3.test/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


def photo_keys(n: int, prefix: str = "photos/") -> list[str]:
    return [f"{prefix}img{i:04d}.jpg" for i in range(n)]


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def fake_s3():
    return FakeS3Client()


@pytest.fixture()
def photos(fake_s3):
    """A bucket with 120 photos directly under photos/"""
    fake_s3.add(*photo_keys(120))
    return fake_s3


@pytest.fixture()
def redis_server():
    return FakeServer()


@pytest.fixture()
def redis(redis_server):
    return FakeAsyncRedis(server=redis_server)


@pytest.fixture()
async def cache(redis):
    cache = CacheStore(lambda: redis)
    yield cache
    await cache.close()


@pytest.fixture()
def store(fake_s3):
    return ObjectStore(fake_s3, BUCKET)


@pytest.fixture()
def lock(cache):
    return DistributedLock(cache, poll_interval_ms=10)


@pytest.fixture()
def listing(store, cache, lock):
    return PaginationCache(store, cache, lock=lock)


@pytest.fixture()
def connections(store, cache, listing):
    return BrowserConnections(store=store, cache=cache, listing=listing)


@pytest.fixture()
async def client(connections):
    api.app.dependency_overrides[get_connections] = lambda: connections
    async with AsyncClient(transport=ASGITransport(app=api.app), base_url="http://test", follow_redirects=False) as client:
        yield client
    api.app.dependency_overrides.clear()
