"""s3browser API: paginated, cached listings of an S3 bucket."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from s3browser.api.cache import app_cache
from s3browser.api.files import app_files
from s3browser.config import validate_settings
from s3browser.connections import browser_connections


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.info("Connecting to object store and cache...")
    if warning := validate_settings():
        logging.warning(warning)
    async with browser_connections() as connections:
        app.state.connections = connections
        yield


app = FastAPI(
    title="s3browser",
    description=__doc__ if __doc__ else "",
    openapi_tags=[
        dict(name="files", description="Endpoints to list files and folders in the bucket"),
        dict(name="cache", description="Endpoints to inspect and clear the listing cache"),
    ],
    lifespan=lifespan,
)
app.include_router(app_files)
app.include_router(app_cache)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.exception_handler(ValueError)
async def value_error_exception_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content={"message": str(exc)},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc) -> JSONResponse:
    return JSONResponse(
        status_code=422, content={"message": "There was an issue with the data you sent.", "fields_invalid": exc.errors()}
    )
