"""Per-process performance counters."""
from dataclasses import dataclass
from typing import Any, Dict


def _hit_rate(hits: int, misses: int) -> int:
    """Hit rate as a whole percentage."""
    total = hits + misses
    if total == 0:
        return 0
    return round(hits / total * 100)


@dataclass
class PerformanceMetrics:
    """
    Counters for API calls and cache effectiveness.

    `cache_*` count the conversation history cache; `prompt_cache_*`
    count the system prompt cache.
    """
    api_calls: int = 0
    total_response_ms: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    prompt_cache_hits: int = 0
    prompt_cache_misses: int = 0

    def record_api_call(self, response_ms: int) -> None:
        self.api_calls += 1
        self.total_response_ms += response_ms

    def record_cache(self, hit: bool) -> None:
        if hit:
            self.cache_hits += 1
        else:
            self.cache_misses += 1

    def record_prompt_cache(self, hit: bool) -> None:
        if hit:
            self.prompt_cache_hits += 1
        else:
            self.prompt_cache_misses += 1

    @property
    def average_response_ms(self) -> int:
        if self.api_calls == 0:
            return 0
        return round(self.total_response_ms / self.api_calls)

    @property
    def cache_hit_rate(self) -> int:
        return _hit_rate(self.cache_hits, self.cache_misses)

    @property
    def prompt_cache_hit_rate(self) -> int:
        return _hit_rate(self.prompt_cache_hits, self.prompt_cache_misses)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "api_calls": self.api_calls,
            "total_response_ms": self.total_response_ms,
            "average_response_ms": self.average_response_ms,
            "cache_hits": self.cache_hits,
            "cache_misses": self.cache_misses,
            "cache_hit_rate": self.cache_hit_rate,
            "prompt_cache_hits": self.prompt_cache_hits,
            "prompt_cache_misses": self.prompt_cache_misses,
            "prompt_cache_hit_rate": self.prompt_cache_hit_rate,
        }
