"""
Caching reverse proxy for the Exoplanet Archive.
"""

from typing import AsyncIterator, Dict, Optional, TYPE_CHECKING

import httpx
from fastapi import Request, Response
from fastapi.responses import StreamingResponse

from shared.errors import (
    MethodNotAllowedError,
    MissingQueryError,
    ProxyLayerException,
    TransportFailure,
)
from shared.logging import get_logger

from ..adapters.archive_client import ArchiveClient
from ..caching.response_cache import CACHEABLE_HEADERS, CachedResponse, ResponseCache
from .request_body import raw_query_string

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


ALLOWED_METHODS = ("GET", "HEAD")
DEFAULT_CACHE_CONTROL = "s-maxage=300, stale-while-revalidate=60"
CACHE_STATUS_HEADER = "x-cache"


class ArchiveProxy:
    """Forwards ``GET/HEAD /api/exoplanets?<query>`` to the archive.

    Successful (2xx) upstream bodies are kept in the response cache under
    the raw query string; everything else is relayed but not stored.
    """

    def __init__(
        self,
        client: ArchiveClient,
        cache: ResponseCache[CachedResponse],
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.client = client
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger("proxy.archive")

    async def handle(self, request: Request) -> Response:
        """Serve one archive request."""
        if request.method not in ALLOWED_METHODS:
            raise MethodNotAllowedError(request.method, ", ".join(ALLOWED_METHODS))

        query_string = raw_query_string(request)
        if not query_string:
            raise MissingQueryError()

        deadline = self.client.start_deadline()
        try:
            cached = self.cache.get(query_string)
            self._record_cache_access(hit=cached is not None)
            if cached is not None:
                self.logger.debug("Archive cache hit", key=query_string)
                return self._replay(cached)

            try:
                upstream = await self.client.open_stream(
                    query_string,
                    accept=request.headers.get("accept"),
                    user_agent=request.headers.get("user-agent"),
                    deadline=deadline,
                )
            except TransportFailure as exc:
                # Nothing has been written to the caller yet
                raise TransportFailure(
                    exc.service,
                    exc.reason,
                    status_code=502,
                    error="UpstreamError",
                ) from exc

            headers = self._relay_headers(upstream)
            if request.method == "HEAD":
                return await self._relay_buffered(query_string, upstream, headers, deadline)

            return StreamingResponse(
                self._relay_body(query_string, upstream, headers, deadline),
                status_code=upstream.status_code,
                headers={**headers, CACHE_STATUS_HEADER: "MISS"},
            )
        except ProxyLayerException:
            raise
        except Exception as e:
            self.logger.error("Archive proxy error", error=str(e), exc_info=True)
            raise ProxyLayerException("ProxyError", "Proxy error", status_code=500)

    def _replay(self, cached: CachedResponse) -> Response:
        return Response(
            content=cached.body,
            status_code=cached.status,
            headers={**cached.headers, CACHE_STATUS_HEADER: "HIT"},
        )

    def _relay_headers(self, upstream: httpx.Response) -> Dict[str, str]:
        headers = {}
        for name in CACHEABLE_HEADERS:
            value = upstream.headers.get(name)
            if value is not None:
                headers[name] = value
        headers.setdefault("cache-control", DEFAULT_CACHE_CONTROL)
        return headers

    async def _relay_body(
        self,
        key: str,
        upstream: httpx.Response,
        headers: Dict[str, str],
        deadline: float,
    ) -> AsyncIterator[bytes]:
        chunks = []
        body = upstream.aiter_bytes()
        try:
            while True:
                chunk = await self.client.within_deadline(lambda: _next_chunk(body), deadline)
                if chunk is None:
                    break
                chunks.append(chunk)
                yield chunk
        except (httpx.HTTPError, TransportFailure) as exc:
            # Status and headers are already on the wire; abort the connection
            # instead of writing a second status.
            self.logger.error(
                "Upstream stream interrupted",
                key=key,
                bytes_relayed=sum(len(c) for c in chunks),
                error=repr(exc),
            )
            raise TransportFailure(
                self.client.service_name,
                "Upstream stream interrupted",
                status_code=502,
                error="UpstreamError",
            ) from exc
        finally:
            await upstream.aclose()

        self._store(key, upstream.status_code, headers, b"".join(chunks))

    async def _relay_buffered(
        self,
        key: str,
        upstream: httpx.Response,
        headers: Dict[str, str],
        deadline: float,
    ) -> Response:
        """HEAD callers get no body, so read it fully here to populate the cache."""
        try:
            body = await self.client.within_deadline(upstream.aread, deadline)
        except (httpx.HTTPError, TransportFailure) as exc:
            self.logger.error("Upstream read failed", key=key, error=repr(exc))
            raise TransportFailure(
                self.client.service_name,
                "Upstream read failed",
                status_code=502,
                error="UpstreamError",
            ) from exc
        finally:
            await upstream.aclose()

        self._store(key, upstream.status_code, headers, body)
        return Response(
            content=body,
            status_code=upstream.status_code,
            headers={**headers, CACHE_STATUS_HEADER: "MISS"},
        )

    def _store(self, key: str, status: int, headers: Dict[str, str], body: bytes) -> None:
        if not 200 <= status < 300:
            self.logger.info("Not caching non-2xx archive response", key=key, status_code=status)
            return

        try:
            expires_at = self.cache.expiry()
            entry = CachedResponse.capture(key, status, headers, body, expires_at=expires_at)
            self.cache.set(key, entry, expires_at=expires_at)
        except Exception as exc:
            # The client response is already complete
            self.logger.error("Archive cache store failed", key=key, error=str(exc))

    def _record_cache_access(self, hit: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_cache_access("archive", hit)


async def _next_chunk(body: AsyncIterator[bytes]) -> Optional[bytes]:
    """Next body chunk, or None once the upstream body is complete."""
    try:
        return await body.__anext__()
    except StopAsyncIteration:
        return None
