"""System prompt loading."""
import logging
import time
from pathlib import Path
from typing import Callable, Optional

from services.errors import ConfigError
from services.metrics import PerformanceMetrics

logger = logging.getLogger(__name__)


class PromptSource:
    """Reads the system prompt from an externally edited text file."""

    def __init__(
        self,
        path: str,
        cache_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
        metrics: Optional[PerformanceMetrics] = None
    ):
        """
        Args:
            path: Text file holding the prompt
            cache_seconds: How long a read prompt is reused (0 disables caching)
            clock: Time source in seconds
            metrics: Counters updated on cache hits and misses
        """
        self.path = Path(path)
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._metrics = metrics
        self._cached: Optional[str] = None
        self._expires_at = 0.0

    def get(self) -> str:
        """
        Return the system prompt.

        Raises:
            ConfigError: If the file is missing or blank
        """
        if self.cache_seconds > 0:
            now = self._clock()
            if self._cached is not None and self._expires_at > now:
                self._record(hit=True)
                return self._cached
            self._record(hit=False)

        if not self.path.is_file():
            raise ConfigError(f"System prompt file not found: {self.path}")

        prompt = self.path.read_text(encoding="utf-8").strip()
        if not prompt:
            raise ConfigError(f"System prompt file is empty: {self.path}")

        if self.cache_seconds > 0:
            self._cached = prompt
            self._expires_at = self._clock() + self.cache_seconds
        logger.debug(f"Loaded system prompt ({len(prompt)} chars) from {self.path}")
        return prompt

    def invalidate(self) -> None:
        self._cached = None
        self._expires_at = 0.0

    def _record(self, hit: bool) -> None:
        if self._metrics is not None:
            self._metrics.record_prompt_cache(hit)
