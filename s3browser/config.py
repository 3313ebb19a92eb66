"""
s3browser Configuration

We read configuration from 2 sources, in order of precedence (higher is more priority)
- Environment variables
- A .env file, either in the current working directory or in a location specified
  by the S3BROWSER_ENV_FILE environment variable
"""

import functools
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from s3browser.errors import ConfigError

ENV_PREFIX = "s3browser_"


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")

    s3_host: Annotated[
        str | None,
        Field(description="Endpoint URL of the S3-compatible store. Leave empty to use AWS S3 itself"),
    ] = None
    s3_region: Annotated[str, Field(description="Region of the bucket")] = "us-east-1"
    s3_access_key: Annotated[str | None, Field(description="S3 access key id")] = None
    s3_secret_key: Annotated[str | None, Field(description="S3 secret access key")] = None
    s3_bucket: Annotated[str | None, Field(description="The bucket to browse")] = None
    s3_prefix: Annotated[
        str,
        Field(description="Root prefix within the bucket. All listings are relative to this prefix"),
    ] = ""
    s3_force_path_style: Annotated[
        bool,
        Field(description="Use path-style addressing (needed for most self-hosted stores such as MinIO)"),
    ] = True
    s3_max_attempts: Annotated[
        int,
        Field(description="Maximum number of attempts botocore makes for a single S3 request", ge=1),
    ] = 3

    redis_enabled: Annotated[bool, Field(description="Cache listings in redis")] = True
    redis_host: Annotated[str, Field(description="Redis host")] = "localhost"
    redis_port: Annotated[int, Field(description="Redis port")] = 6379
    redis_password: Annotated[str | None, Field(description="Redis password (if any)")] = None
    redis_db: Annotated[int, Field(description="Redis database number")] = 0

    page_size: Annotated[int, Field(description="Default number of files per page", ge=1)] = 50
    cache_ttl_seconds: Annotated[
        int,
        Field(description="How long cached listing pages and metadata live", ge=1),
    ] = 24 * 60 * 60
    lock_ttl_seconds: Annotated[
        int,
        Field(description="Expiry of the rebuild lock, protects against a crashed rebuilder", ge=1),
    ] = 30
    lock_wait_ms: Annotated[
        int,
        Field(description="How long a request waits for another request's rebuild before listing directly", ge=0),
    ] = 10_000
    lock_poll_ms: Annotated[int, Field(description="Polling interval while waiting for a rebuild", ge=1)] = 100

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)


@functools.lru_cache()
def get_settings() -> Settings:
    temp = Settings()
    load_dotenv(temp.env_file, override=False)
    return Settings()


def validate_settings(settings: Settings | None = None) -> str | None:
    """Return a warning for a setup that works but is probably not what was intended"""
    settings = settings or get_settings()
    if not settings.redis_enabled:
        return "Redis caching is disabled: every listing request will enumerate the full prefix"
    if settings.s3_host and settings.s3_host.startswith("http://") and "localhost" not in settings.s3_host:
        return f"The S3 endpoint {settings.s3_host} is not using https. Credentials are sent unencrypted"
    return None


def check_settings(settings: Settings | None = None) -> Settings:
    """Raise ConfigError if the service cannot start with these settings"""
    settings = settings or get_settings()
    if not settings.s3_bucket:
        raise ConfigError(f"No bucket configured, set {ENV_PREFIX.upper()}S3_BUCKET")
    if bool(settings.s3_access_key) != bool(settings.s3_secret_key):
        raise ConfigError("s3_access_key and s3_secret_key must be given together")
    return settings


if __name__ == "__main__":
    # Echo the settings
    for k, v in get_settings().model_dump().items():
        print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")
