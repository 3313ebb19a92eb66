"""
s3browser: paginated, cached listings of an S3 bucket
"""

import argparse
import asyncio
import inspect
import logging
import os
import sys
from pathlib import Path

import uvicorn
from uvicorn.config import LOGGING_CONFIG

from s3browser.cache.manage import cache_stats, clear_prefix_cache, clear_s3_cache
from s3browser.config import ENV_PREFIX, Settings, check_settings, get_settings, validate_settings
from s3browser.connections import browser_connections
from s3browser.errors import ConfigError, StoreError


def run(args):
    settings = get_settings()
    try:
        check_settings(settings)
    except ConfigError as e:
        logging.error(f"Invalid configuration: {e}")
        sys.exit(1)
    logging.info(f"Starting server at port {args.port}, debug={not args.nodebug}, bucket={settings.s3_bucket}")
    if warning := validate_settings(settings):
        logging.warning(warning)
    logging.info(
        "To change server config, create an .env file and/or set environment parameters,\n"
        f"{' ' * 26}see s3browser/config.py for more information.\n"
        f"{' ' * 26}You can also run `python -m s3browser create-env` to create a template .env file\n"
    )
    log_config = "logging.yml" if Path("logging.yml").exists() else LOGGING_CONFIG
    uvicorn.run("s3browser.api:app", host="0.0.0.0", reload=not args.nodebug, port=int(args.port), log_config=log_config)


def create_env(args):
    if os.path.exists(".env"):
        print("*** File .env already exists, quitting ***")
        sys.exit(1)

    with open(".env", "w") as f:
        for fieldname, fieldinfo in Settings.model_fields.items():
            if fieldname == "env_file":
                continue
            if doc := fieldinfo.description:
                f.write(f"# {doc}\n")
            value = args.bucket if fieldname == "s3_bucket" and args.bucket else fieldinfo.default
            if value is None:
                f.write(f"#{ENV_PREFIX}{fieldname}=\n\n")
            else:
                f.write(f"{ENV_PREFIX}{fieldname}={value}\n\n")
    os.chmod(".env", 0o600)
    print("*** Created .env file ***")


async def list_prefix(args):
    async with browser_connections() as connections:
        try:
            result = await connections.listing.list_objects(args.prefix, args.page, args.page_size)
        except StoreError as e:
            logging.error(f"Listing failed: {e}")
            sys.exit(1)
    print(result.model_dump_json(by_alias=True, indent=2))


async def show_cache_stats(_args):
    async with browser_connections() as connections:
        stats = await cache_stats(connections.cache)
    if stats is None:
        print("(Redis cache is disabled or unreachable)")
        return
    for name, count in stats.model_dump(by_alias=True).items():
        print(f"{name}: {count}")


async def clear_cache(args):
    async with browser_connections() as connections:
        if args.prefix is None:
            success = await clear_s3_cache(connections.cache)
        else:
            success = await clear_prefix_cache(connections.cache, connections.bucket, args.prefix)
    if not success:
        logging.error("Clearing cache failed (is redis enabled and reachable?)")
        sys.exit(1)
    print("*** Cache cleared ***")


def main():
    parser = argparse.ArgumentParser(description=__doc__, prog="python -m s3browser")

    subparsers = parser.add_subparsers(dest="action", title="action", help="Action to perform:", required=True)
    p = subparsers.add_parser("run", help="Run the backend API in development mode")
    p.add_argument(
        "--no-debug",
        action="store_true",
        dest="nodebug",
        help="Disable debug mode (no auto-reload)",
    )
    p.add_argument("-p", "--port", help="Port", default=5000)
    p.set_defaults(func=run)

    p = subparsers.add_parser("create-env", help="Create a template .env file with all settings")
    p.add_argument("-b", "--bucket", help="The bucket to browse")
    p.set_defaults(func=create_env)

    p = subparsers.add_parser("list", help="List one page of a prefix (using the cache) and print it as json")
    p.add_argument("prefix", nargs="?", default="", help="The prefix to list, relative to the root prefix")
    p.add_argument("--page", type=int, default=1, help="1-based page number")
    p.add_argument("--page-size", type=int, dest="page_size", help="Files per page")
    p.set_defaults(func=list_prefix)

    p = subparsers.add_parser("cache-stats", help="Count the cached pages, metadata and locks")
    p.set_defaults(func=show_cache_stats)

    p = subparsers.add_parser("clear-cache", help="Clear cached listings")
    p.add_argument("--prefix", help="Only clear this prefix (default: clear everything)")
    p.set_defaults(func=clear_cache)

    args = parser.parse_args()

    logging.basicConfig(format="[%(levelname)-7s:%(name)-15s] %(message)s", level=logging.INFO)
    for noisy in ("botocore", "aiobotocore", "redis"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    if inspect.iscoroutinefunction(args.func):
        asyncio.run(args.func(args))
    else:
        args.func(args)


if __name__ == "__main__":
    main()
