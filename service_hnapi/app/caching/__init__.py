"""
Result caching package.

Provides the ResultCache used by the proxy to shield the origin from
repeated identical requests. Two backends implement the same contract:
an in-process expiring store and Redis. Invalidation of related keys is
explicit and owned by the caller.
"""

from .base import CacheBackend, CacheError, CacheMiss, CacheWriteError
from .local_backend import LocalCacheBackend
from .result_cache import ResultCache, create_result_cache

__all__ = [
    "CacheBackend",
    "CacheError",
    "CacheMiss",
    "CacheWriteError",
    "LocalCacheBackend",
    "ResultCache",
    "create_result_cache",
]
