"""
Generative chat client and reply extraction.
"""

import json
from typing import Any, Optional, Sequence

from shared.errors import ConfigurationError

from .upstream_client import UpstreamClient


# Checked in order; the first pointer that resolves to a non-null value wins.
# Different chat deployments put the text in different places, so this list
# is part of the upstream contract.
REPLY_POINTERS: Sequence[str] = (
    "/reply",
    "/result",
    "/output",
    "/choices/0/text",
)

_MISSING = object()


def resolve_pointer(document: Any, pointer: str) -> Any:
    """Resolve an RFC 6901 JSON pointer, returning ``_MISSING`` when absent."""
    if pointer == "":
        return document

    current = document
    for raw_token in pointer.lstrip("/").split("/"):
        token = raw_token.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict):
            if token not in current:
                return _MISSING
            current = current[token]
        elif isinstance(current, list):
            if not token.isdigit() or int(token) >= len(current):
                return _MISSING
            current = current[int(token)]
        else:
            return _MISSING
    return current


def extract_reply(data: Any, pointers: Sequence[str] = REPLY_POINTERS) -> str:
    """Pick the reply text out of an upstream payload.

    Falls back to the compact JSON form of the whole payload.
    """
    for pointer in pointers:
        value = resolve_pointer(data, pointer)
        if value is _MISSING or value is None:
            continue
        if isinstance(value, str):
            return value
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)

    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


class ChatClient(UpstreamClient):
    """Client for the configured chat/completion endpoint."""

    service_name = "chat"

    def __init__(self, endpoint: Optional[str], api_key: Optional[str], **kwargs):
        super().__init__(**kwargs)
        self.endpoint = endpoint
        self.api_key = api_key

    @property
    def configured(self) -> bool:
        return bool(self.endpoint) and bool(self.api_key)

    async def complete(self, prompt: str) -> str:
        """Send the prompt upstream and return the reply text."""
        if not self.configured:
            raise ConfigurationError("GEMINI_API_KEY or GEMINI_API_ENDPOINT not configured on server.")

        response = await self._send(
            "POST",
            self.endpoint,
            json={"prompt": prompt},
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self.api_key}",
            },
        )
        self.raise_for_upstream(response)

        try:
            data = response.json()
        except ValueError:
            return response.text
        return extract_reply(data)
