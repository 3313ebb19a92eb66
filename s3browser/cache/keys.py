"""
Key naming for cached listings. These names are shared with any tool that inspects or manages
the cache, so they must not change:

    s3:page:{bucket}:{prefix}:{page_index}
    s3:meta:{bucket}:{prefix}
    s3:lock:{bucket}:{prefix}

where prefix is the request prefix without leading or trailing slashes.
"""

import re

PAGE_PATTERN = "s3:page:*"
META_PATTERN = "s3:meta:*"
LOCK_PATTERN = "s3:lock:*"


def clean_prefix(prefix: str) -> str:
    return prefix.strip("/")


def page_key(bucket: str, prefix: str, page_index: int) -> str:
    return f"s3:page:{bucket}:{clean_prefix(prefix)}:{page_index}"


def meta_key(bucket: str, prefix: str) -> str:
    return f"s3:meta:{bucket}:{clean_prefix(prefix)}"


def lock_key(bucket: str, prefix: str) -> str:
    return f"s3:lock:{bucket}:{clean_prefix(prefix)}"


def glob_escape(s: str) -> str:
    return re.sub(r"([*?\[\]\\])", r"\\\1", s)


def page_pattern(bucket: str, prefix: str) -> str:
    """Glob pattern matching all page keys of one prefix"""
    return f"s3:page:{glob_escape(bucket)}:{glob_escape(clean_prefix(prefix))}:*"
