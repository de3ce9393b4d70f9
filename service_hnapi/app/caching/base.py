"""
Cache backend contract and cache error taxonomy.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict


class CacheError(RuntimeError):
    """Base class for result cache failures."""


class CacheMiss(CacheError):
    """The key is absent or expired; compute the value and repopulate."""

    def __init__(self, key: str):
        super().__init__(f"key missing: {key}")
        self.key = key


class CacheWriteError(CacheError):
    """The backend rejected a write."""

    def __init__(self, key: str, reason: str):
        super().__init__(f"could not set {key}: {reason}")
        self.key = key
        self.reason = reason


class CacheBackend(ABC):
    """Storage strategy behind ResultCache.

    ``set`` must apply the TTL together with the write, never as a
    follow-up call.
    """

    cache_type = "unknown"

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value or raise ``CacheMiss``."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store ``value`` for ``ttl`` seconds or raise ``CacheWriteError``."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""

    @abstractmethod
    async def stats(self) -> Dict[str, Any]:
        """Backend-native counters as a flat mapping."""

    async def connect(self) -> None:
        """Establish connections, if the backend has any."""

    async def close(self) -> None:
        """Release connections, if the backend has any."""
