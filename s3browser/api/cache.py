"""API Endpoints to inspect and clear the listing cache."""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from s3browser.api.common import get_connections
from s3browser.cache.manage import cache_stats, clear_prefix_cache, clear_s3_cache
from s3browser.connections import BrowserConnections
from s3browser.models import CacheStats

app_cache = APIRouter(prefix="/api", tags=["cache"])


class CacheStatsResponse(BaseModel):
    success: bool
    message: str
    data: CacheStats | None = None


class ClearCacheResponse(BaseModel):
    success: bool
    message: str
    prefix: str | None = Field(None, description="The cleared prefix (for action=clear-prefix)")


@app_cache.get("/cache")
async def get_cache_stats(connections: BrowserConnections = Depends(get_connections)) -> CacheStatsResponse:
    """Count the cached page, metadata and lock keys"""
    stats = await cache_stats(connections.cache)
    if stats is None:
        return CacheStatsResponse(success=False, message="Redis cache is disabled or unreachable")
    return CacheStatsResponse(success=True, message="Cache statistics retrieved", data=stats)


@app_cache.delete("/cache")
async def clear_cache(
    action: str | None = Query(None, description="What to clear: clear-all or clear-prefix"),
    prefix: str | None = Query(None, description="The prefix to clear (for action=clear-prefix)"),
    connections: BrowserConnections = Depends(get_connections),
):
    """
    Clear cached listings: either everything (action=clear-all) or all pages and metadata of
    one prefix (action=clear-prefix, requires the prefix parameter).
    """
    if action == "clear-all":
        success = await clear_s3_cache(connections.cache)
        return ClearCacheResponse(success=success, message="Cleared all listing caches" if success else "Clearing cache failed")
    if action == "clear-prefix" and prefix is not None:
        success = await clear_prefix_cache(connections.cache, connections.bucket, prefix)
        message = f'Cleared cache for prefix "{prefix}"' if success else "Clearing cache failed"
        return ClearCacheResponse(success=success, message=message, prefix=prefix)
    return JSONResponse(
        status_code=400,
        content={
            "success": False,
            "message": "Invalid action. Use action=clear-all, or action=clear-prefix with a prefix parameter",
        },
    )
