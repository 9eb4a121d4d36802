"""
Proxy caching package.

Process-local TTL caches used by the proxy handlers. Entries live only as
long as the hosting process; each instance of the service owns its own
caches and nothing is shared between instances.
"""

from .response_cache import CachedResponse, ResponseCache

__all__ = ["CachedResponse", "ResponseCache"]
