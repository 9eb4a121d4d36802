"""
Base HTTP client for third-party upstreams.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Optional, TypeVar, TYPE_CHECKING

import httpx

from shared.errors import TransportFailure, UpstreamError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


DEFAULT_TIMEOUT_SECONDS = 25.0

T = TypeVar("T")


class UpstreamClient:
    """Thin wrapper around one persistent ``httpx.AsyncClient``.

    Every request runs against one total deadline of ``timeout_seconds``
    measured from the moment it is sent, covering connect, headers and
    body. Nothing is retried; network-level failures and expired deadlines
    surface as ``TransportFailure`` and non-2xx answers can be turned into
    ``UpstreamError`` with ``raise_for_upstream``.
    """

    service_name = "upstream"

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.timeout_seconds = timeout_seconds
        self.timeout = httpx.Timeout(timeout_seconds)
        self.metrics = metrics
        self.logger = get_logger(f"proxy.{self.service_name}_client")
        self._http_client = http_client
        self._owns_client = http_client is None

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazily created shared client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def aclose(self) -> None:
        """Close the underlying client if this wrapper created it."""
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    def start_deadline(self) -> float:
        """Monotonic instant at which a request started now must be finished."""
        return time.monotonic() + self.timeout_seconds

    async def within_deadline(self, operation: Callable[[], Awaitable[T]], deadline: float) -> T:
        """Await ``operation()`` but give up once ``deadline`` has passed."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise self._deadline_exceeded()

        try:
            return await asyncio.wait_for(operation(), timeout=remaining)
        except asyncio.TimeoutError:
            raise self._deadline_exceeded() from None

    def _deadline_exceeded(self) -> TransportFailure:
        self.logger.error(
            "Upstream deadline exceeded",
            upstream=self.service_name,
            timeout_seconds=self.timeout_seconds,
        )
        self._record(outcome="timeout", duration=self.timeout_seconds)
        return TransportFailure(self.service_name, "Upstream request timed out")

    async def _send(
        self,
        method: str,
        url: str,
        *,
        stream: bool = False,
        deadline: Optional[float] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Issue a request and translate transport errors.

        Without ``stream`` the body is read inside the deadline too. With
        ``stream`` the caller keeps reading against the same ``deadline``.
        """
        if deadline is None:
            deadline = self.start_deadline()
        request = self.http_client.build_request(method, url, timeout=self.timeout, **kwargs)
        start_time = time.time()

        try:
            response = await self.within_deadline(
                lambda: self.http_client.send(request, stream=stream), deadline
            )
        except httpx.HTTPError as exc:
            duration = time.time() - start_time
            self.logger.error(
                "Upstream transport failure",
                upstream=self.service_name,
                method=method,
                url=url,
                error=repr(exc),
                duration_ms=round(duration * 1000, 2),
            )
            self._record(outcome="transport_error", duration=duration)
            raise TransportFailure(self.service_name, describe_transport_error(exc)) from exc

        duration = time.time() - start_time
        self._record(outcome=f"{response.status_code // 100}xx", duration=duration)
        self.logger.debug(
            "Upstream responded",
            upstream=self.service_name,
            url=url,
            status_code=response.status_code,
            duration_ms=round(duration * 1000, 2),
        )
        return response

    def raise_for_upstream(self, response: httpx.Response) -> None:
        """Raise ``UpstreamError`` for non-2xx responses (body must be read)."""
        if response.is_success:
            return

        self.logger.error(
            "Upstream error",
            upstream=self.service_name,
            status_code=response.status_code,
            response=response.text,
        )
        raise UpstreamError(self.service_name, response.status_code, response.text)

    def _record(self, outcome: str, duration: float) -> None:
        if self.metrics is not None:
            self.metrics.record_upstream_request(self.service_name, outcome, duration)


def describe_transport_error(exc: httpx.HTTPError) -> str:
    """Short client-facing description; details stay in the server log."""
    if isinstance(exc, httpx.TimeoutException):
        return "Upstream request timed out"
    if isinstance(exc, httpx.ConnectError):
        return "Could not connect to upstream"
    return "Upstream request failed"
