"""
Chat proxy with a short-lived prompt cache.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

from fastapi import Request

from shared.errors import (
    ConfigurationError,
    InvalidBodyError,
    MethodNotAllowedError,
    MissingPromptError,
    ProxyLayerException,
)
from shared.logging import get_logger

from ..adapters.chat_client import ChatClient
from ..caching.response_cache import ResponseCache
from .request_body import read_json_object

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class ChatProxy:
    """Answers ``POST /api/gemini`` with ``{"reply": ...}``.

    Replies are cached by exact prompt text. A missing API key or endpoint
    is a terminal 501, checked after the prompt is validated.
    """

    def __init__(
        self,
        client: ChatClient,
        cache: ResponseCache[str],
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.client = client
        self.cache = cache
        self.metrics = metrics
        self.logger = get_logger("proxy.chat")

    async def handle(self, request: Request) -> Dict[str, Any]:
        if request.method != "POST":
            raise MethodNotAllowedError(request.method, "POST")

        try:
            body = await read_json_object(request)
        except InvalidBodyError:
            body = {}

        prompt = body.get("prompt")
        if not isinstance(prompt, str) or not prompt:
            raise MissingPromptError()

        if not self.client.configured:
            raise ConfigurationError("GEMINI_API_KEY or GEMINI_API_ENDPOINT not configured on server.")

        cached = self.cache.get(prompt)
        self._record_cache_access(hit=cached is not None)
        if cached is not None:
            return {"reply": cached, "cached": True}

        try:
            reply = await self.client.complete(prompt)
        except ProxyLayerException:
            raise
        except Exception as e:
            self.logger.error("Chat proxy error", error=str(e), exc_info=True)
            raise ProxyLayerException("ProxyError", "Proxy error", status_code=500)

        self.cache.set(prompt, reply)
        return {"reply": reply}

    def _record_cache_access(self, hit: bool) -> None:
        if self.metrics is not None:
            self.metrics.record_cache_access("chat", hit)
