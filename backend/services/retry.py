"""Bounded exponential-backoff retry policy."""
import time
from dataclasses import dataclass, field
from typing import Callable


@dataclass
class RetryPolicy:
    """
    How many times to try an upstream call and how long to wait in between.

    Attempts are numbered from 1. No delay precedes the first attempt;
    attempt n > 1 waits `base_delay * 2 ** (n - 2)` seconds.
    """
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    sleep: Callable[[float], None] = field(default=time.sleep, repr=False)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.base_delay < 0:
            raise ValueError(f"base_delay must not be negative, got {self.base_delay}")

    def delay_for(self, attempt: int) -> float:
        if attempt <= 1:
            return 0.0
        return self.base_delay * (2 ** (attempt - 2))

    def wait_before(self, attempt: int) -> float:
        """Sleep ahead of `attempt` and return how long that was."""
        delay = self.delay_for(attempt)
        if delay > 0:
            self.sleep(delay)
        return delay
