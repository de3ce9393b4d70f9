"""
Redis-backed result store shared across processes.
"""

from __future__ import annotations

import json
from typing import Any, Callable, Dict, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.logging import get_logger

from .base import CacheBackend, CacheMiss, CacheWriteError


class RedisCacheBackend(CacheBackend):
    """JSON values in Redis with the TTL set atomically by ``SET ... EX``.

    The client is created eagerly but connects lazily; ``connect`` verifies
    the connection and reports the outcome through the callbacks instead of
    raising, so an unreachable server degrades every call to a miss or a
    failed write rather than taking the process down.
    """

    cache_type = "redis"

    def __init__(
        self,
        redis_url: str,
        *,
        on_connect: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[BaseException], None]] = None,
        client: Optional[redis.Redis] = None,
    ) -> None:
        self.redis_url = redis_url
        self.logger = get_logger("hnapi.cache.redis")
        self._on_connect = on_connect or self._log_connect
        self._on_error = on_error or self._log_error
        self._redis = client if client is not None else redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30,
        )

    def _log_connect(self) -> None:
        self.logger.info("Connected to Redis cache server")

    def _log_error(self, exc: BaseException) -> None:
        self.logger.error("Redis cache error", error=str(exc))

    async def connect(self) -> None:
        try:
            await self._redis.ping()
        except (RedisError, OSError) as exc:
            self._on_error(exc)
            return
        self._on_connect()

    async def close(self) -> None:
        try:
            await self._redis.aclose()
        except (RedisError, OSError) as exc:  # pragma: no cover - close is best effort
            self.logger.debug("Redis close failed", error=str(exc))

    async def get(self, key: str) -> Any:
        try:
            value = await self._redis.get(key)
        except (RedisError, OSError) as exc:
            self._on_error(exc)
            raise CacheMiss(key) from exc

        if value is None:
            raise CacheMiss(key)

        try:
            return json.loads(value)
        except json.JSONDecodeError as exc:
            self.logger.warning("Discarding malformed cache payload", key=key)
            raise CacheMiss(key) from exc

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise CacheWriteError(key, str(exc)) from exc

        try:
            if ttl > 0:
                await self._redis.set(key, payload, ex=ttl)
            else:
                await self._redis.set(key, payload)
        except (RedisError, OSError) as exc:
            self._on_error(exc)
            raise CacheWriteError(key, str(exc)) from exc

    async def delete(self, key: str) -> None:
        try:
            await self._redis.delete(key)
        except (RedisError, OSError) as exc:
            self._on_error(exc)

    async def stats(self) -> Dict[str, Any]:
        info = await self._redis.info("stats")
        return {str(name): value for name, value in info.items()}
