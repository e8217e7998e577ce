"""Short-lived in-memory cache for aggregate results."""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL = 60.0  # seconds


@dataclass
class CacheEntry:
    key: str
    value: Any
    expires_at: float  # clock() deadline


class TTLCache:
    """Key/value cache with one fixed TTL per instance.

    Expired entries are only evicted when read; there is no background sweep.
    """

    def __init__(self, ttl: float = DEFAULT_TTL, clock: Callable[[], float] = time.monotonic):
        """Initialize cache.

        Args:
            ttl: Lifetime of every entry in seconds
            clock: Monotonic time source, replaceable in tests
        """
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if missing or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() < entry.expires_at:
            return entry.value
        del self._entries[key]
        logger.debug(f"Cache entry {key} expired")
        return None

    def set(self, key: str, value: Any) -> None:
        """Store ``value`` for ``ttl`` seconds from now."""
        self._entries[key] = CacheEntry(key=key, value=value, expires_at=self._clock() + self.ttl)

    def delete(self, key: str) -> bool:
        """Evict an entry. Returns True if it existed."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._clock() < entry.expires_at

    def __len__(self) -> int:
        """Number of stored entries, including expired ones not yet read."""
        return len(self._entries)
