"""
Bounded exponential backoff shared by every retry loop in the service.

Attempts are 1-based: the delay slept *after* a failed attempt ``n`` is
``initial_delay * base ** (n - 1)``, capped at ``max_delay``.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, List


Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class BackoffPolicy:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = False
    jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("delays must be non-negative")

    def get_delay(self, attempt: int) -> float:
        """Delay to wait after failed attempt ``attempt`` (1-based)."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** (attempt - 1)),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0.0)

    def schedule(self) -> List[float]:
        """All delays a fully failing loop would sleep, in order."""
        return [self.get_delay(attempt) for attempt in range(1, self.max_attempts)]

    def has_next(self, attempt: int) -> bool:
        return attempt < self.max_attempts


async def default_sleep(seconds: float) -> None:
    await asyncio.sleep(seconds)


__all__ = ["BackoffPolicy", "Sleeper", "default_sleep"]
