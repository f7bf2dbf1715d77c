"""Key-value cache with per-entry expiry."""
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class CacheService(ABC):
    """String cache used for the conversation store and sessions."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the cached value, or None if absent or expired."""

    @abstractmethod
    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store `value` under `key`, replacing any existing entry."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete `key` if present."""


class InMemoryCache(CacheService):
    """Process-local cache; entries expire `ttl_seconds` after their last write."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, Tuple[str, float]] = {}

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            logger.debug(f"Cache entry expired: {key}")
            return None
        return value

    def put(self, key: str, value: str, ttl_seconds: int) -> None:
        self._entries[key] = (value, self._clock() + ttl_seconds)

    def remove(self, key: str) -> None:
        self._entries.pop(key, None)
