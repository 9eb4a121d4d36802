"""
Proxy handlers: one per upstream, each turning an inbound request into a
relayed upstream response or a JSON error envelope.
"""

from .archive_proxy import ArchiveProxy
from .predict_proxy import PredictProxy
from .chat_proxy import ChatProxy

__all__ = ["ArchiveProxy", "PredictProxy", "ChatProxy"]
