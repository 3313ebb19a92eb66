from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

FileKind = Literal["image", "video", "text", "file"]


class CamelModel(BaseModel):
    """Base for models that are exchanged as camelCase JSON (over the API and in the cache)"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


######################## LISTING #########################


class ObjectEntry(CamelModel):
    """A file or folder under a listed prefix. Folders have size 0 and kind 'file'."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    key: str = Field(description="The full key in the store")
    name: str = Field(description="Key relative to the listed prefix (for folders: the first path segment)")
    size: int = Field(0, ge=0)
    last_modified: datetime
    is_folder: bool = False
    kind: FileKind = Field("file", alias="type")


class S3ListResult(CamelModel):
    objects: list[ObjectEntry] = Field(description="The files on the requested page")
    folders: list[ObjectEntry] = Field(description="All folders directly under the prefix (never paginated)")
    total_objects: int
    total_folders: int
    current_page: int
    total_pages: int
    page_size: int
    root_prefix: str = Field(description="The configured root prefix that all listings are relative to")


class ObjectMetadata(CamelModel):
    size: int
    last_modified: datetime
    content_type: str | None = None


######################## CACHE ENTRIES #########################


class PrefixMetadata(CamelModel):
    total_object_count: int
    total_folder_count: int
    total_pages: int
    page_size: int
    all_folders: list[ObjectEntry]
    root_prefix: str
    cached_at: datetime


class PageData(CamelModel):
    objects: list[ObjectEntry]
    page_index: int = Field(ge=0)
    page_size: int


class CacheStats(CamelModel):
    total_keys: int
    s3_page_keys: int
    s3_meta_keys: int
    s3_lock_keys: int
