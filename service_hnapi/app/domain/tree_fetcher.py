"""
Recursive item and comment-tree fetcher with bounded-time partial results.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Set

from shared.errors import NotFoundError, OriginError, TransportError, ValidationError
from shared.logging import get_logger

from . import formatting
from .models import Item, ResolvedTree

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..adapters.item_source import ItemSource
    from shared.metrics import MetricsCollector


STORY_FEEDS = {
    "news": "topstories",
    "newest": "newstories",
    "best": "beststories",
    "ask": "askstories",
    "show": "showstories",
    "jobs": "jobstories",
}

DEFAULT_COMMENT_TIMEOUT = 1.0
DEFAULT_LIST_LIMIT = 30
NEW_COMMENTS_LIMIT = 30


class TreeFetcher:
    """Builds item trees and story listings from an ItemSource.

    Root, listing and poll-part fetches propagate origin failures. Each comment
    fetch races ``comment_timeout`` from the moment its request is issued; a
    comment that misses its deadline or fails is dropped together with its
    replies, and the in-flight request is left to finish in the background.
    """

    def __init__(
        self,
        source: "ItemSource",
        *,
        comment_timeout: float = DEFAULT_COMMENT_TIMEOUT,
        list_limit: int = DEFAULT_LIST_LIMIT,
        list_concurrency: int = 10,
        metrics: Optional["MetricsCollector"] = None,
    ) -> None:
        self.source = source
        self.comment_timeout = comment_timeout
        self.list_limit = list_limit
        self.list_concurrency = list_concurrency
        self.metrics = metrics
        self.logger = get_logger("hnapi.tree_fetcher")
        self._detached: Set[asyncio.Task] = set()

    async def fetch_tree(self, item_id: int) -> Optional[ResolvedTree]:
        """Fetch an item with its comments and poll options.

        Returns ``None`` when the origin has no record for ``item_id``.
        """
        try:
            item = await self.source.fetch_item_by_id(item_id)
        except TransportError as exc:
            self._count("origin_fetches_total", outcome="error")
            self.logger.error("Root item fetch failed", item_id=item_id, error=exc.reason)
            raise OriginError(exc.reason, details={"item_id": item_id}) from exc

        if item is None:
            return None
        return await self._resolve(item)

    async def fetch_item(self, item_id: int, now: Optional[float] = None) -> Optional[Dict[str, Any]]:
        """Fetch and render an item page, ``None`` when absent."""
        tree = await self.fetch_tree(item_id)
        if tree is None:
            return None
        return formatting.render_tree(tree, now)

    async def _resolve(self, item: Item) -> ResolvedTree:
        comments_task = asyncio.gather(*(self._fetch_comment(kid) for kid in item.kids))
        try:
            parts = await self._fetch_parts(item) if item.is_poll and item.parts else []
        except BaseException:
            comments_task.cancel()
            raise
        comments = await comments_task

        return ResolvedTree(
            item=item,
            comments=tuple(comment for comment in comments if comment is not None),
            parts=tuple(part for part in parts if part is not None),
        )

    async def _fetch_parts(self, item: Item) -> List[Optional[Item]]:
        try:
            return await self.source.fetch_children_batch(item.parts)
        except TransportError as exc:
            raise OriginError(exc.reason, details={"item_id": item.id, "parts": list(item.parts)}) from exc

    async def _fetch_comment(self, item_id: int) -> Optional[ResolvedTree]:
        """Resolve one comment subtree, ``None`` on timeout, failure or absence.

        The deadline starts when the source issues the request, not while the
        fetch is queued behind other requests.
        """
        started = asyncio.Event()
        fetch = asyncio.ensure_future(
            self.source.fetch_comment_by_id(item_id, started=started, timeout=self.comment_timeout)
        )
        issued = asyncio.ensure_future(started.wait())
        try:
            await asyncio.wait({fetch, issued}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            fetch.cancel()
            raise
        finally:
            issued.cancel()

        done, _ = await asyncio.wait({fetch}, timeout=self.comment_timeout)

        if not done:
            self._detach(fetch)
            self._timed_out(item_id)
            return None

        try:
            item = fetch.result()
        except asyncio.TimeoutError:
            self._timed_out(item_id)
            return None
        except Exception as exc:
            self._count("origin_fetches_total", outcome="error")
            self.logger.warning("Comment fetch failed", item_id=item_id, error=str(exc))
            return None

        if item is None:
            return None
        return await self._resolve(item)

    def _timed_out(self, item_id: int) -> None:
        self._count("comment_timeouts_total")
        self.logger.debug("Comment fetch timed out", item_id=item_id, timeout=self.comment_timeout)

    def _detach(self, task: asyncio.Task) -> None:
        """Keep a timed-out fetch alive without waiting for it."""
        self._detached.add(task)
        task.add_done_callback(self._forget)

    def _forget(self, task: asyncio.Task) -> None:
        self._detached.discard(task)
        if not task.cancelled() and task.exception() is not None:
            self.logger.debug("Detached comment fetch failed", error=str(task.exception()))

    async def fetch_list(self, category: str, page: int = 1, now: Optional[float] = None) -> List[Dict[str, Any]]:
        """Fetch one page of a story feed as flat listing entries."""
        feed = STORY_FEEDS.get(category)
        if feed is None:
            raise ValidationError(f"Unknown category: {category}", details={"category": category})
        if page < 1:
            raise ValidationError("page must be >= 1", details={"page": page})

        start = (page - 1) * self.list_limit
        try:
            ids = await self.source.fetch_story_ids(feed, self.list_limit * page)
            items = await self._fetch_batch(ids[start:start + self.list_limit])
        except TransportError as exc:
            self._count("origin_fetches_total", outcome="error")
            raise OriginError(exc.reason, details={"category": category, "page": page}) from exc

        return [formatting.render_listing_entry(item, now) for item in items if item is not None]

    async def _fetch_batch(self, ids: List[int]) -> List[Optional[Item]]:
        semaphore = asyncio.Semaphore(self.list_concurrency)

        async def _bounded(item_id: int) -> Optional[Item]:
            async with semaphore:
                return await self.source.fetch_item_by_id(item_id)

        return list(await asyncio.gather(*(_bounded(item_id) for item_id in ids)))

    async def fetch_user(self, user_id: str, now: Optional[float] = None) -> Dict[str, Any]:
        """Fetch and render a user profile."""
        try:
            profile = await self.source.fetch_user(user_id)
        except TransportError as exc:
            raise OriginError(exc.reason, details={"user_id": user_id}) from exc

        if profile is None:
            raise NotFoundError("User not found", details={"user_id": user_id})
        return formatting.render_user(profile, now)

    async def fetch_new_comments(self, now: Optional[float] = None) -> List[Dict[str, Any]]:
        """Recently updated items that are comments, flat."""
        try:
            ids = await self.source.fetch_updated_item_ids()
            items = await self._fetch_batch(ids[:NEW_COMMENTS_LIMIT])
        except TransportError as exc:
            raise OriginError(exc.reason) from exc

        return [
            formatting.render_new_comment(item, now)
            for item in items
            if item is not None and item.type == "comment"
        ]

    async def close(self) -> None:
        """Cancel comment fetches still running in the background."""
        pending = list(self._detached)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)
