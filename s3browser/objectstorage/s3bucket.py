"""
List and inspect objects in an S3-compatible bucket (e.g., AWS S3, MinIO, SeaweedFS, Cloudflare R2).
"""

import logging
import posixpath
import re
from datetime import UTC, datetime

from botocore.exceptions import BotoCoreError, ClientError
from types_aiobotocore_s3.client import S3Client
from types_aiobotocore_s3.type_defs import ListObjectsV2RequestTypeDef

from s3browser.cache.keys import clean_prefix
from s3browser.errors import AccessDenied, NotFound, StoreError
from s3browser.models import FileKind, ObjectEntry, ObjectMetadata

# Max keys per list_objects_v2 call. 1000 is the S3 maximum and is accepted by all compatible stores
LIST_BATCH_SIZE = 1000
SIGNED_URL_SECONDS_VALID = 3600

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "svg"}
VIDEO_EXTENSIONS = {"mp4", "webm", "mov", "avi"}
TEXT_EXTENSIONS = {"txt", "text", "log", "json", "yaml", "yml", "ini", "conf", "cfg", "config", "properties", "props"}

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
ACCESS_DENIED_CODES = {"403", "AccessDenied", "InvalidAccessKeyId", "SignatureDoesNotMatch"}


def classify(name: str) -> FileKind:
    ext = posixpath.splitext(name)[1].lower().lstrip(".")
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    if ext in TEXT_EXTENSIONS:
        return "text"
    return "file"


def store_error(e: ClientError | BotoCoreError, action: str) -> StoreError:
    """Translate a botocore exception into a StoreError (or NotFound / AccessDenied)"""
    if not isinstance(e, ClientError):
        return StoreError(f"{action} failed: {e}")
    error = e.response.get("Error", {})
    code = error.get("Code")
    status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    message = f"{action} failed: {error.get('Message') or code}"
    if code in NOT_FOUND_CODES or status == 404:
        return NotFound(message, status=status, code=code)
    if code in ACCESS_DENIED_CODES or status == 403:
        return AccessDenied(message, status=status, code=code)
    return StoreError(message, status=status, code=code)


class ObjectStore:
    """
    Read access to one bucket, relative to an optional root prefix.
    The S3 client is shared and owned by the caller (see s3browser.connections).
    """

    def __init__(self, client: S3Client, bucket: str, root_prefix: str = ""):
        self.client = client
        self.bucket = bucket
        self.root_prefix = root_prefix

    def full_prefix(self, prefix: str = "") -> str:
        """
        The store prefix for a request prefix: the request prefix under the root prefix, ending in a slash.
        Leading and trailing slashes of the request prefix are ignored, as they are for the cache keys.
        """
        clean = clean_prefix(prefix)
        relative = f"{clean}/" if clean else ""
        if not self.root_prefix:
            return relative
        return re.sub(r"/+", "/", f"{self.root_prefix}/{relative}")

    async def list_full_prefix(self, full_prefix: str) -> tuple[list[ObjectEntry], list[ObjectEntry]]:
        """
        Enumerate all files and folders directly under full_prefix, following continuation tokens
        until the listing is exhausted. Returns (objects, folders), both in store order.
        The directory marker object (key == full_prefix) is skipped.
        """
        objects: list[ObjectEntry] = []
        folders: list[ObjectEntry] = []
        seen_folders: set[str] = set()
        listed_at = datetime.now(UTC)

        params: ListObjectsV2RequestTypeDef = {
            "Bucket": self.bucket,
            "Prefix": full_prefix,
            "Delimiter": "/",
            "MaxKeys": LIST_BATCH_SIZE,
        }
        calls = 0
        while True:
            try:
                res = await self.client.list_objects_v2(**params)
            except (ClientError, BotoCoreError) as e:
                raise store_error(e, f"Listing {self.bucket}/{full_prefix}") from e
            calls += 1

            for common_prefix in res.get("CommonPrefixes", []):
                folder = common_prefix.get("Prefix")
                if not folder or folder in seen_folders:
                    continue
                seen_folders.add(folder)
                folders.append(
                    ObjectEntry(
                        key=folder,
                        name=folder.removeprefix(full_prefix).removesuffix("/"),
                        size=0,
                        last_modified=listed_at,
                        is_folder=True,
                        kind="file",
                    )
                )

            for content in res.get("Contents", []):
                key = content.get("Key")
                if key is None or key == full_prefix:
                    continue
                name = key.removeprefix(full_prefix).removeprefix("/")
                objects.append(
                    ObjectEntry(
                        key=key,
                        name=name,
                        size=content.get("Size") or 0,
                        last_modified=content.get("LastModified") or listed_at,
                        is_folder=False,
                        kind=classify(name),
                    )
                )

            token = res.get("NextContinuationToken")
            if not token:
                break
            params["ContinuationToken"] = token

        logging.debug(
            f"Listed {len(objects)} objects and {len(folders)} folders under {self.bucket}/{full_prefix} in {calls} calls"
        )
        return objects, folders

    async def get_object_metadata(self, key: str) -> ObjectMetadata:
        try:
            res = await self.client.head_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise store_error(e, f"Reading metadata of {key}") from e
        return ObjectMetadata(
            size=res.get("ContentLength") or 0,
            last_modified=res.get("LastModified") or datetime.now(UTC),
            content_type=res.get("ContentType"),
        )

    async def get_signed_url(self, key: str, ttl_seconds: int = SIGNED_URL_SECONDS_VALID) -> str:
        """
        Create a presigned GET url for the object. Presigning itself never checks the object,
        so we do a HEAD request first to fail with NotFound or AccessDenied here instead of on download.
        """
        await self.get_object_metadata(key)
        try:
            return await self.client.generate_presigned_url(
                "get_object", Params={"Bucket": self.bucket, "Key": key}, ExpiresIn=ttl_seconds
            )
        except (ClientError, BotoCoreError) as e:
            raise store_error(e, f"Signing url for {key}") from e
