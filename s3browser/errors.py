"""
Error types used by s3browser.

StoreError and its subclasses propagate to callers. CacheUnavailable never leaves the cache store,
and LockTimeout is turned into a direct listing by the pagination engine.
"""


class StoreError(Exception):
    """The object store could not be reached or refused the request"""

    def __init__(self, message: str, status: int | None = None, code: str | None = None):
        super().__init__(message)
        self.status = status
        self.code = code


class NotFound(StoreError):
    pass


class AccessDenied(StoreError):
    pass


class CacheUnavailable(Exception):
    pass


class LockTimeout(Exception):
    pass


class ConfigError(Exception):
    pass
