"""
In-process expiring store.
"""

from __future__ import annotations

import copy
import time
from typing import Any, Callable, Dict, Tuple

from .base import CacheBackend, CacheMiss, CacheWriteError


class LocalCacheBackend(CacheBackend):
    """Dictionary of ``key -> (expires_at, value)`` with lazy expiry.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store. A TTL of 0 or less keeps the entry until
    it is deleted.
    """

    cache_type = "memory"

    def __init__(self, max_keys: int = 0, clock: Callable[[], float] = time.monotonic):
        self.max_keys = max_keys
        self._clock = clock
        self._store: Dict[str, Tuple[float, Any]] = {}
        self._hits = 0
        self._misses = 0

    async def get(self, key: str) -> Any:
        entry = self._store.get(key)
        if entry is not None:
            expires_at, value = entry
            if expires_at <= 0 or self._clock() < expires_at:
                self._hits += 1
                return copy.deepcopy(value)
            del self._store[key]
        self._misses += 1
        raise CacheMiss(key)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        if self.max_keys and key not in self._store and len(self._store) >= self.max_keys:
            self._purge_expired()
            if len(self._store) >= self.max_keys:
                raise CacheWriteError(key, f"cache full ({self.max_keys} keys)")

        try:
            stored = copy.deepcopy(value)
        except Exception as exc:
            raise CacheWriteError(key, str(exc)) from exc

        expires_at = self._clock() + ttl if ttl > 0 else 0.0
        self._store[key] = (expires_at, stored)

    async def delete(self, key: str) -> None:
        self._store.pop(key, None)

    async def stats(self) -> Dict[str, Any]:
        self._purge_expired()
        return {
            "hits": self._hits,
            "misses": self._misses,
            "keys": len(self._store),
        }

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [key for key, (expires_at, _) in self._store.items() if 0 < expires_at <= now]
        for key in expired:
            del self._store[key]
