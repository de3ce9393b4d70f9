"""
HN API proxy service.
"""

import platform
import resource
import sys
from typing import Dict, Optional

from fastapi import Path, Query, Request, Response
from fastapi.responses import PlainTextResponse

from shared.base_service import BaseService
from shared.config import ServiceConfig

from .adapters.hn_client import HackerNewsClient
from .adapters.item_source import ItemSource
from .caching.result_cache import ResultCache, create_result_cache
from .domain.read_through import ReadThroughService, normalize_page
from .domain.tree_fetcher import TreeFetcher


LISTING_ROUTES = ("news", "news2", "newest", "ask", "show", "jobs", "best")

USER_ID_PATTERN = r"^[\w-]+$"


class HnApiService(BaseService):
    """Caching proxy service implementation."""

    def __init__(
        self,
        config: Optional[ServiceConfig] = None,
        *,
        source: Optional[ItemSource] = None,
        cache: Optional[ResultCache] = None,
    ):
        super().__init__("hnapi", config)

        self.source = source or HackerNewsClient(
            self.config.origin_url,
            timeout=self.config.origin_timeout,
            max_connections=self.config.origin_max_connections,
        )
        self.cache = cache or create_result_cache(self.config, metrics=self.metrics)
        self.fetcher = TreeFetcher(
            self.source,
            comment_timeout=self.config.comment_timeout,
            list_limit=self.config.list_limit,
            list_concurrency=self.config.list_concurrency,
            metrics=self.metrics,
        )
        self.read_through = ReadThroughService(self.cache, self.fetcher, metrics=self.metrics)

        @self.app.on_event("startup")
        async def _startup():
            await self.cache.connect()

        @self.app.on_event("shutdown")
        async def _shutdown():
            await self.fetcher.close()
            await self.source.close()
            await self.cache.close()

        self._setup_cache_headers()
        self._setup_proxy_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.hnapi_service = self

    async def _check_dependencies(self) -> Dict[str, str]:
        return {"cache": self.cache.cache_type}

    def _setup_cache_headers(self):
        ttl = self.config.cache_ttl
        header = f"public, max-age={ttl}, s-maxage={round(ttl / 2)}"

        @self.app.middleware("http")
        async def add_cache_control(request: Request, call_next):
            response = await call_next(request)
            response.headers.setdefault("Cache-Control", header)
            return response

    def _setup_proxy_routes(self):
        """Set up the public API routes."""

        @self.app.get("/")
        async def root():
            """Service descriptor with process and cache diagnostics."""
            return {
                "name": "hnapi",
                "desc": "Unofficial Hacker News API",
                "version": "1.0.0",
                "process": {
                    "versions": {
                        "python": platform.python_version(),
                        "implementation": platform.python_implementation(),
                        "platform": sys.platform,
                    },
                    "memoryUsage": _memory_usage(),
                },
                "cacheType": self.cache.cache_type,
                "cacheStats": await self.cache.stats(),
            }

        @self.app.get("/favicon.ico")
        async def favicon():
            return Response(status_code=204)

        @self.app.get("/robots.txt", response_class=PlainTextResponse)
        async def robots():
            return "User-agent: *\nDisallow: /"

        @self.app.get("/item/{item_id}")
        async def get_item(item_id: int):
            data, _ = await self.read_through.item(item_id)
            return data

        @self.app.get("/user/{user_id}")
        async def get_user(user_id: str = Path(pattern=USER_ID_PATTERN)):
            data, _ = await self.read_through.user(user_id)
            return data

        @self.app.get("/newcomments")
        async def get_new_comments():
            data, _ = await self.read_through.new_comments()
            return data

        for category in LISTING_ROUTES:
            self._add_listing_route(category)

    def _add_listing_route(self, category: str):
        async def get_listing(page: Optional[str] = Query(default=None)):
            data, _ = await self.read_through.stories(
                category, normalize_page(page, self.config.max_page)
            )
            return data

        get_listing.__name__ = f"get_{category}"
        self.app.add_api_route(f"/{category}", get_listing, methods=["GET"])


def _memory_usage() -> Dict[str, str]:
    """Peak resident set size of this process."""
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is in kilobytes on Linux and bytes on macOS
    peak = usage.ru_maxrss if sys.platform == "darwin" else usage.ru_maxrss * 1024
    return {"maxRss": f"{round(peak / 1024 / 1024, 2)} MB"}


def create_app(
    config: Optional[ServiceConfig] = None,
    *,
    source: Optional[ItemSource] = None,
    cache: Optional[ResultCache] = None,
):
    """Create FastAPI application."""
    service = HnApiService(config, source=source, cache=cache)
    return service.app


if __name__ == "__main__":
    service = HnApiService()
    service.run()
