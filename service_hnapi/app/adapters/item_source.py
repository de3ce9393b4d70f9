"""
Contract for fetching raw items from the origin.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..domain.models import Item, UserProfile


class ItemSource(ABC):
    """Fetch-by-id access to the origin.

    Implementations return ``None`` for records the origin reports as empty
    and raise ``shared.errors.TransportError`` on network or protocol failure.
    """

    @abstractmethod
    async def fetch_item_by_id(self, item_id: int) -> Optional[Item]:
        """Fetch a single item, ``None`` when the origin has no record."""

    async def fetch_comment_by_id(
        self, item_id: int, *, started: asyncio.Event, timeout: float
    ) -> Optional[Item]:
        """Fetch an item inside a comment tree.

        ``started`` is set once the request is actually issued, so time spent
        waiting for a connection slot is not charged to the comment's deadline.
        Implementations that hold shared resources should give up after
        ``timeout`` seconds, raising ``asyncio.TimeoutError``, so an abandoned
        fetch releases them.
        """
        started.set()
        return await self.fetch_item_by_id(item_id)

    async def fetch_children_batch(self, ids: Sequence[int]) -> List[Optional[Item]]:
        """Fetch several items concurrently; the result is aligned to ``ids``."""
        return list(await asyncio.gather(*(self.fetch_item_by_id(item_id) for item_id in ids)))

    @abstractmethod
    async def fetch_story_ids(self, feed: str, limit: int) -> List[int]:
        """Return the first ``limit`` ids of a story feed (e.g. ``topstories``)."""

    @abstractmethod
    async def fetch_user(self, user_id: str) -> Optional[UserProfile]:
        """Fetch a user profile, ``None`` when unknown."""

    @abstractmethod
    async def fetch_updated_item_ids(self) -> List[int]:
        """Return the ids of recently changed items."""

    async def close(self) -> None:
        """Release underlying resources."""
