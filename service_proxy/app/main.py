"""
Proxy service for the Exoplanet Explorer front-end.

Routes browser traffic to the Exoplanet Archive, the prediction model and
the chat model. Run locally with ``python -m service_proxy.app.main``.
"""

import time
from typing import Any, Callable, Dict, Optional

import httpx
from fastapi import Request

from shared.base_service import BaseService
from .adapters.archive_client import ArchiveClient
from .adapters.chat_client import ChatClient
from .adapters.predict_client import PredictClient
from .caching.response_cache import CachedResponse, ResponseCache
from .domain.archive_proxy import ArchiveProxy
from .domain.chat_proxy import ChatProxy
from .domain.predict_proxy import PredictProxy


# Every method is routed so unsupported ones get a JSON 405 with an Allow header.
ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]


class ProxyService(BaseService):
    """Proxy service implementation."""

    def __init__(
        self,
        *,
        archive_http_client: Optional[httpx.AsyncClient] = None,
        predict_http_client: Optional[httpx.AsyncClient] = None,
        chat_http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.monotonic,
        **config_overrides: Any,
    ):
        super().__init__("proxy", **config_overrides)
        timeout = self.config.upstream_timeout_seconds

        self.archive_cache: ResponseCache[CachedResponse] = ResponseCache(
            "archive", self.config.archive_cache_ttl_seconds, clock=clock
        )
        self.chat_cache: ResponseCache[str] = ResponseCache(
            "chat", self.config.chat_cache_ttl_seconds, clock=clock
        )

        self.archive_client = ArchiveClient(
            timeout, http_client=archive_http_client, metrics=self.metrics
        )
        self.predict_client = PredictClient(
            self.config.predict_endpoint,
            timeout_seconds=timeout,
            http_client=predict_http_client,
            metrics=self.metrics,
        )
        self.chat_client = ChatClient(
            self.config.gemini_api_endpoint,
            self.config.gemini_api_key,
            timeout_seconds=timeout,
            http_client=chat_http_client,
            metrics=self.metrics,
        )

        self.archive_proxy = ArchiveProxy(self.archive_client, self.archive_cache, metrics=self.metrics)
        self.predict_proxy = PredictProxy(self.predict_client)
        self.chat_proxy = ChatProxy(self.chat_client, self.chat_cache, metrics=self.metrics)

        if not self.chat_client.configured:
            self.logger.warning("Chat upstream not configured; /api/gemini will answer 501")

        self._setup_proxy_routes()

        # Expose service instance via app state for introspection/testing
        self.app.state.proxy_service = self

    def _setup_proxy_routes(self):
        """Set up proxy routes."""

        @self.app.api_route("/api/exoplanets", methods=ROUTED_METHODS)
        async def exoplanets(request: Request):
            """Relay an archive TAP query, cached for five minutes."""
            return await self.archive_proxy.handle(request)

        @self.app.api_route("/api/predict", methods=ROUTED_METHODS)
        async def predict(request: Request):
            """Relay candidate parameters to the prediction model."""
            return await self.predict_proxy.handle(request)

        @self.app.api_route("/api/gemini", methods=ROUTED_METHODS)
        async def gemini(request: Request):
            """Ask the chat model about a result."""
            return await self.chat_proxy.handle(request)

        @self.app.get("/api/cache/stats")
        async def get_cache_stats():
            """Per-cache size and hit/miss counters."""
            return {
                "archive": self.archive_cache.stats(),
                "chat": self.chat_cache.stats(),
            }

    async def _on_shutdown(self):
        await self.archive_client.aclose()
        await self.predict_client.aclose()
        await self.chat_client.aclose()

    async def _check_dependencies(self) -> Dict[str, Any]:
        return {
            "archive_cache_entries": len(self.archive_cache),
            "chat_cache_entries": len(self.chat_cache),
            "chat": "configured" if self.chat_client.configured else "not_configured",
        }


def create_app(**kwargs: Any):
    """Create FastAPI application."""
    service = ProxyService(**kwargs)
    return service.app


if __name__ == "__main__":
    service = ProxyService()
    service.run()
