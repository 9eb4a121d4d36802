"""
Request body helpers shared by the POST proxies.
"""

import json
from typing import Any, Dict

from fastapi import Request

from shared.errors import InvalidBodyError


async def read_json_object(request: Request) -> Dict[str, Any]:
    """Parse the request body as a JSON object; an empty body reads as ``{}``."""
    raw = await request.body()
    if not raw.strip():
        return {}

    try:
        body = json.loads(raw)
    except ValueError as exc:
        raise InvalidBodyError("Request body must be valid JSON") from exc

    if not isinstance(body, dict):
        raise InvalidBodyError()
    return body


def raw_query_string(request: Request) -> str:
    """Everything after the first ``?`` of the request target, undecoded."""
    return request.scope.get("query_string", b"").decode("latin-1")
