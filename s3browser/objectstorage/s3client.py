from contextlib import asynccontextmanager
from typing import AsyncGenerator

from aiobotocore.config import AioConfig
from aiobotocore.session import get_session
from types_aiobotocore_s3.client import S3Client

from s3browser.config import Settings


def s3_config(settings: Settings) -> AioConfig:
    """Botocore client config. Retries live here, the listing code itself never retries."""
    return AioConfig(
        signature_version="s3v4",
        retries={"max_attempts": settings.s3_max_attempts, "mode": "standard"},
        s3={"addressing_style": "path" if settings.s3_force_path_style else "auto"},
    )


@asynccontextmanager
async def s3_client(settings: Settings) -> AsyncGenerator[S3Client, None]:
    """
    Open an S3 client for the configured endpoint. The client is an async context manager
    holding a connection pool, so it should be created once and shared.
    """
    credentials = {}
    if settings.s3_access_key and settings.s3_secret_key:
        credentials = dict(aws_access_key_id=settings.s3_access_key, aws_secret_access_key=settings.s3_secret_key)

    session = get_session()
    client = session.create_client(
        service_name="s3",
        endpoint_url=settings.s3_host or None,
        region_name=settings.s3_region,
        config=s3_config(settings),
        **credentials,
    )
    async with client as s3:
        yield s3
