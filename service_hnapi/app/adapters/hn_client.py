"""
ItemSource over the public Hacker News Firebase REST endpoints.
"""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional

import httpx

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import TransportError
from shared.logging import get_logger
from shared.retry import RetryConfig, RetryError, retry_on_exception

from ..domain.models import Item, UserProfile
from .item_source import ItemSource


DEFAULT_ORIGIN_URL = "https://hacker-news.firebaseio.com/v0"


class HackerNewsClient(ItemSource):
    """Async client for the Hacker News origin.

    Outstanding requests are capped by a semaphore so a wide comment tree
    cannot flood the origin.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_ORIGIN_URL,
        *,
        timeout: float = 10.0,
        max_connections: int = 50,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.logger = get_logger("hnapi.origin")
        self._semaphore = asyncio.Semaphore(max_connections)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            limits=httpx.Limits(max_connections=max_connections),
            transport=transport,
        )
        self.circuit_breaker = CircuitBreaker(
            failure_threshold=10,
            recovery_timeout=30.0,
            name="hn_origin",
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def fetch_item_by_id(self, item_id: int) -> Optional[Item]:
        payload = await self._get_json(f"/item/{int(item_id)}.json")
        if not payload:
            return None
        return Item.from_dict(payload)

    async def fetch_comment_by_id(
        self, item_id: int, *, started: asyncio.Event, timeout: float
    ) -> Optional[Item]:
        """Single-attempt item fetch bounded by ``timeout`` once a slot is held.

        Skips retries and the circuit breaker. Raises ``asyncio.TimeoutError``
        when the origin misses the deadline, releasing the slot.
        """
        path = f"/item/{int(item_id)}.json"
        async with self._semaphore:
            started.set()
            try:
                payload = await asyncio.wait_for(self._send(path), timeout)
            except httpx.TransportError as exc:
                raise TransportError(str(exc), details={"path": path}) from exc
        if not payload:
            return None
        return Item.from_dict(payload)

    async def fetch_story_ids(self, feed: str, limit: int) -> List[int]:
        payload = await self._get_json(f"/{feed}.json")
        if not payload:
            return []
        return [int(item_id) for item_id in payload[:limit]]

    async def fetch_user(self, user_id: str) -> Optional[UserProfile]:
        payload = await self._get_json(f"/user/{user_id}.json")
        if not payload or not payload.get("id"):
            return None
        return UserProfile.from_dict(payload)

    async def fetch_updated_item_ids(self) -> List[int]:
        payload = await self._get_json("/updates.json")
        if not payload:
            return []
        return [int(item_id) for item_id in payload.get("items", [])]

    async def _get_json(self, path: str) -> Any:
        """GET a path and decode it, mapping every failure to TransportError."""
        try:
            async with self._semaphore:
                return await self.circuit_breaker.call(self._request, path)
        except CircuitBreakerOpenException as exc:
            raise TransportError(str(exc), details={"path": path}) from exc
        except RetryError as exc:
            raise TransportError(str(exc.last_exception), details={"path": path}) from exc

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=2, base_delay=0.2))
    async def _request(self, path: str) -> Any:
        return await self._send(path)

    async def _send(self, path: str) -> Any:
        """One GET; non-200 responses and bad JSON become TransportError."""
        try:
            response = await self._client.get(path)
        except httpx.TransportError:
            raise
        except httpx.HTTPError as exc:
            self.logger.error("Origin request failed", path=path, error=str(exc))
            raise TransportError(str(exc), details={"path": path}) from exc

        if response.status_code != 200:
            self.logger.error(
                "Origin returned unexpected status",
                path=path,
                status_code=response.status_code,
            )
            raise TransportError(
                f"Unexpected status {response.status_code}",
                details={"path": path, "status_code": response.status_code},
            )

        try:
            return response.json()
        except ValueError as exc:
            raise TransportError("Malformed origin payload", details={"path": path}) from exc
