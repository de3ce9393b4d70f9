"""
Read-through request policy: look up the result cache, compute on a miss,
repopulate, and keep derived keys consistent.
"""

from __future__ import annotations

import re
import time
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

from shared.errors import NotFoundError, ValidationError
from shared.logging import get_logger

from ..caching.base import CacheError, CacheWriteError
from .tree_fetcher import STORY_FEEDS

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..caching.result_cache import ResultCache
    from .tree_fetcher import TreeFetcher
    from shared.metrics import MetricsCollector


# A fresh first page makes the cached second page stale
RELATED_KEYS: Dict[str, Tuple[str, ...]] = {
    "news": ("news2",),
}

SLOW_BUILD_SECONDS = 25.0

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def normalize_page(raw: Any, max_page: int = 10) -> int:
    """Clamp a page query value to ``[1, max_page]``.

    Only the leading integer counts (``"3.5"`` is page 3); junk becomes 1.
    """
    match = _LEADING_INT.match("" if raw is None else str(raw))
    page = int(match.group(1)) if match else 1
    return min(max_page, max(1, page or 1))


def resolve_listing(category: str, page: int) -> Tuple[str, int]:
    """Map a listing route onto its story feed category and page."""
    if category == "news2":
        # "news2" ignores the page parameter entirely
        return "news", 2
    if category not in STORY_FEEDS:
        raise ValidationError(f"Unknown category: {category}", details={"category": category})
    return category, page


def listing_cache_key(category: str, page: int) -> str:
    return category + (str(page) if page > 1 else "")


class ReadThroughService:
    """Serves listings, items and users through the result cache.

    Cache failures are never visible to callers: a failed lookup is treated as
    a miss and a rejected write only gets logged.
    """

    def __init__(
        self,
        cache: "ResultCache",
        fetcher: "TreeFetcher",
        *,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.cache = cache
        self.fetcher = fetcher
        self.metrics = metrics
        self.logger = get_logger("hnapi.read_through")

    async def stories(self, category: str, page: int = 1) -> Tuple[Any, str]:
        base, page = resolve_listing(category, page)
        key = listing_cache_key(base, page)
        return await self._read_through(
            key,
            lambda: self.fetcher.fetch_list(base, page),
            invalidates=RELATED_KEYS.get(key, ()),
        )

    async def item(self, item_id: int) -> Tuple[Any, str]:
        return await self._read_through(f"post{item_id}", lambda: self._build_item(item_id))

    async def user(self, user_id: str) -> Tuple[Any, str]:
        return await self._read_through(f"user{user_id}", lambda: self.fetcher.fetch_user(user_id))

    async def new_comments(self) -> Tuple[Any, str]:
        return await self._read_through("newcomments", self.fetcher.fetch_new_comments)

    async def _build_item(self, item_id: int) -> Dict[str, Any]:
        start = time.perf_counter()
        data = await self.fetcher.fetch_item(item_id)
        duration = time.perf_counter() - start

        if self.metrics:
            self.metrics.get_metric("item_build_duration_seconds").observe(duration)
        if duration > SLOW_BUILD_SECONDS:
            self.logger.info("Slow item build", item_id=item_id, duration_ms=round(duration * 1000))

        if data is None:
            raise NotFoundError("Item not found", details={"item_id": item_id})
        return data

    async def _read_through(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        *,
        invalidates: Sequence[str] = (),
        ttl: Optional[int] = None,
    ) -> Tuple[Any, str]:
        """Return ``(value, source)`` where source is ``cache`` or ``origin``."""
        try:
            return await self.cache.get(key), "cache"
        except CacheError:
            pass

        for related in invalidates:
            await self.cache.delete(related)

        value = await compute()

        try:
            await self.cache.set(key, value, ttl)
        except CacheWriteError:
            # Already logged by the cache; the fresh value is still served
            pass
        return value, "origin"
