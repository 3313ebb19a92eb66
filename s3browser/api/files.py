"""API Endpoints for listing files."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from s3browser.api.common import get_connections
from s3browser.connections import BrowserConnections
from s3browser.errors import StoreError
from s3browser.models import S3ListResult

app_files = APIRouter(prefix="/api", tags=["files"])


@app_files.get("/files", response_model=S3ListResult)
async def list_files(
    prefix: Annotated[str, Query(description="Prefix (directory) to list, relative to the root prefix")] = "",
    page: Annotated[int, Query(ge=1, description="1-based page number")] = 1,
    page_size: Annotated[
        int | None, Query(alias="pageSize", ge=1, description="Files per page (default from the server settings)")
    ] = None,
    connections: BrowserConnections = Depends(get_connections),
):
    """
    List one page of files under a prefix, together with all folders directly under it.
    Folders are not paginated.
    """
    try:
        return await connections.listing.list_objects(prefix, page, page_size)
    except StoreError as e:
        logging.error(f"Error fetching files for prefix {prefix!r}: {e}")
        return JSONResponse(status_code=500, content={"error": "Failed to fetch files"})
