"""In-process response cache with per-entry expiry.

Entries live for the lifetime of the process only. The exchange client
uses one shared instance so repeated dashboard refreshes inside a TTL
window do not hit the exchange again.
"""

import json
import time
from typing import Any, Callable

from alphascan.logging import logger


def make_key(endpoint: str, params: dict[str, Any]) -> str:
    """Build a cache key from an endpoint name and its query parameters."""
    return f"{endpoint}:{json.dumps(params, sort_keys=True, default=str)}"


class TTLCache:
    """Key-value store whose entries expire after their own TTL."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None when absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug("Cache entry expired key={key}", key=key)
            return None
        return value

    def put(self, key: str, value: Any, ttl: float) -> None:
        """Store value under key for ttl seconds. A non-positive ttl is ignored."""
        if ttl <= 0:
            return
        now = self._clock()
        self._evict_expired(now)
        self._entries[key] = (now + ttl, value)

    def _evict_expired(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("Evicted expired cache entries count={count}", count=len(expired))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


response_cache = TTLCache()
