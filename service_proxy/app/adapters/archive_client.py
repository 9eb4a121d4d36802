"""
Exoplanet Archive TAP client.
"""

from typing import Optional

import httpx

from .upstream_client import DEFAULT_TIMEOUT_SECONDS, UpstreamClient


ARCHIVE_BASE_URL = "https://exoplanetarchive.ipac.caltech.edu/TAP/sync"

DEFAULT_ACCEPT = "*/*"
DEFAULT_USER_AGENT = "exoplanet-explorer-proxy/1.0"


class ArchiveClient(UpstreamClient):
    """Client for the NASA Exoplanet Archive ``TAP/sync`` endpoint."""

    service_name = "archive"

    def __init__(self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS, *, base_url: str = ARCHIVE_BASE_URL, **kwargs):
        super().__init__(timeout_seconds, **kwargs)
        self.base_url = base_url

    def build_url(self, query_string: str) -> str:
        """Append the caller's raw query string to the fixed base address."""
        return f"{self.base_url}?{query_string}"

    async def open_stream(
        self,
        query_string: str,
        accept: Optional[str] = None,
        user_agent: Optional[str] = None,
        deadline: Optional[float] = None,
    ) -> httpx.Response:
        """Start a GET and return the response with its body still unread.

        The caller owns the response and must ``aclose()`` it, reading the
        body against the same ``deadline``.
        """
        url = self.build_url(query_string)
        headers = {
            "accept": accept or DEFAULT_ACCEPT,
            "user-agent": user_agent or DEFAULT_USER_AGENT,
        }
        self.logger.info("Proxying to upstream", url=url)
        return await self._send("GET", url, stream=True, deadline=deadline, headers=headers)
