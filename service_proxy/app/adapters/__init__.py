"""
Adapters package for the Proxy Service.

HTTP client wrappers for the third-party upstreams (Exoplanet Archive,
prediction model, chat model). These adapters encapsulate:

- Upstream URLs and request shapes
- A single explicit timeout per request, no retries
- Error handling that maps to shared errors

Keep adapters thin and side-effect free outside of explicit calls.
"""

from .upstream_client import UpstreamClient
from .archive_client import ArchiveClient, ARCHIVE_BASE_URL
from .predict_client import PredictClient, Prediction
from .chat_client import ChatClient, extract_reply, REPLY_POINTERS

__all__ = [
    "UpstreamClient",
    "ArchiveClient",
    "ARCHIVE_BASE_URL",
    "PredictClient",
    "Prediction",
    "ChatClient",
    "extract_reply",
    "REPLY_POINTERS",
]
