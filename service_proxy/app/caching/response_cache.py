"""
In-process TTL cache for upstream responses.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, Optional, Tuple, TypeVar

from shared.logging import get_logger


V = TypeVar("V")

CACHEABLE_HEADERS = ("content-type", "cache-control")


@dataclass(frozen=True)
class CachedResponse:
    """Upstream response captured for replay.

    ``expires_at`` is on the owning cache's clock; the cache evicts by its
    own copy of the deadline, so the field is informational.
    """

    key: str
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    expires_at: Optional[float] = None

    @classmethod
    def capture(
        cls,
        key: str,
        status: int,
        headers: Any,
        body: bytes,
        expires_at: Optional[float] = None,
    ) -> "CachedResponse":
        """Build an entry keeping only the allow-listed headers."""
        kept = {}
        for name in CACHEABLE_HEADERS:
            value = headers.get(name)
            if value is not None:
                kept[name] = value
        return cls(key=key, status=status, headers=kept, body=body, expires_at=expires_at)


class ResponseCache(Generic[V]):
    """Unbounded key -> value map whose entries expire after a fixed TTL.

    Expired entries are dropped lazily when read; there is no sweeper.
    Writes replace the whole entry. Callers on one event loop never need
    a lock: every operation completes without awaiting.
    """

    def __init__(self, name: str, ttl_seconds: float, clock: Callable[[], float] = time.monotonic):
        self.name = name
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._store: Dict[str, Tuple[V, float]] = {}  # key -> (value, expires_at)
        self.hits = 0
        self.misses = 0
        self.logger = get_logger(f"proxy.cache.{name}")

    def get(self, key: str) -> Optional[V]:
        """Return the live value for key, or None."""
        entry = self._store.get(key)
        if entry is None:
            self.misses += 1
            return None

        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            self.misses += 1
            return None

        self.hits += 1
        return value

    def expiry(self, ttl: Optional[float] = None) -> float:
        """Instant at which an entry stored now would expire."""
        return self._clock() + (self.ttl_seconds if ttl is None else ttl)

    def set(
        self,
        key: str,
        value: V,
        ttl: Optional[float] = None,
        expires_at: Optional[float] = None,
    ) -> None:
        """Store value under key, replacing any previous entry."""
        if expires_at is None:
            expires_at = self.expiry(ttl)
        self._store[key] = (value, expires_at)
        self.logger.debug("Cached value", key=key, expires_at=expires_at)

    def __len__(self) -> int:
        return len(self._store)

    def __contains__(self, key: str) -> bool:
        entry = self._store.get(key)
        return entry is not None and self._clock() < entry[1]

    def stats(self) -> Dict[str, Any]:
        """Size and hit/miss counters."""
        total = self.hits + self.misses
        return {
            "name": self.name,
            "entries": len(self._store),
            "ttl_seconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
            "hit_ratio": round(self.hits / total, 4) if total else 0.0,
        }
