"""In-memory rate limiting.

- RateLimiter: token bucket for assistant turns, keyed per conversation,
  raising 429 when a bucket is empty
- MinIntervalThrottle: minimum spacing between remote writes per artifact
"""

import time
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from fastapi import HTTPException

from app.core.config import get_settings
from app.core.logging import get_logger

logger = get_logger(__name__)

Clock = Callable[[], float]


class RateLimiter:
    """
    Token bucket rate limiter.

    Each key has up to ``burst_size`` tokens, refilled continuously at
    ``requests_per_minute``. Storage is process-local.
    """

    def __init__(self, requests_per_minute: int = 10, burst_size: int = 15, clock: Clock = time.monotonic):
        self.requests_per_minute = requests_per_minute
        self.burst_size = burst_size
        self.refill_rate = requests_per_minute / 60.0  # tokens per second
        self._clock = clock

        # key -> (tokens, last_refill_time)
        self._buckets: dict[str, tuple[float, float]] = {}
        self._request_counts: dict[str, int] = defaultdict(int)

    def _refill(self, key: str) -> float:
        now = self._clock()
        tokens, last_refill = self._buckets.get(key, (float(self.burst_size), now))
        tokens = min(float(self.burst_size), tokens + (now - last_refill) * self.refill_rate)
        self._buckets[key] = (tokens, now)
        return tokens

    def check_limit(self, key: str, cost: float = 1.0) -> bool:
        """
        Consume ``cost`` tokens for ``key``.

        Returns:
            True if allowed

        Raises:
            HTTPException: 429 with Retry-After if the bucket is empty
        """
        tokens = self._refill(key)

        if tokens >= cost:
            self._buckets[key] = (tokens - cost, self._buckets[key][1])
            self._request_counts[key] += 1
            return True

        retry_after = int((cost - tokens) / self.refill_rate) + 1
        logger.warning(
            f"Rate limit exceeded for key: {key}, "
            f"tokens: {tokens:.2f}/{self.burst_size}, retry after: {retry_after}s"
        )
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )

    def get_stats(self, key: str) -> dict[str, Any]:
        tokens = self._refill(key)
        return {
            "tokens_remaining": int(tokens),
            "burst_size": self.burst_size,
            "requests_per_minute": self.requests_per_minute,
            "total_requests": self._request_counts.get(key, 0),
        }

    def reset(self, key: str) -> None:
        self._buckets.pop(key, None)
        self._request_counts.pop(key, None)
        logger.info(f"Rate limit reset for key: {key}")


class MinIntervalThrottle:
    """Allows one action per key every ``min_interval`` seconds."""

    def __init__(self, min_interval: float = 2.0, clock: Clock = time.monotonic):
        self.min_interval = min_interval
        self._clock = clock
        self._last: dict[str, float] = {}

    def remaining(self, key: str) -> float:
        """Seconds until ``key`` may act again (0 when allowed now)."""
        last = self._last.get(key)
        if last is None:
            return 0.0
        return max(0.0, self.min_interval - (self._clock() - last))

    def allow(self, key: str) -> bool:
        """True if ``key`` may act now. Does not record the action."""
        return self.remaining(key) <= 0.0

    def record(self, key: str) -> None:
        self._last[key] = self._clock()

    def reset(self, key: str | None = None) -> None:
        if key is None:
            self._last.clear()
        else:
            self._last.pop(key, None)


_chat_rate_limiter: RateLimiter | None = None


def get_chat_rate_limiter() -> RateLimiter:
    """Process-wide limiter for assistant turns, sized from settings."""
    global _chat_rate_limiter
    if _chat_rate_limiter is None:
        settings = get_settings()
        _chat_rate_limiter = RateLimiter(
            requests_per_minute=settings.CHAT_REQUESTS_PER_MINUTE,
            burst_size=settings.CHAT_BURST_SIZE,
        )
    return _chat_rate_limiter


def check_chat_rate_limit(conversation_id: str) -> None:
    """
    Check the turn rate limit for a conversation.

    Raises:
        HTTPException: 429 if rate limited
    """
    get_chat_rate_limiter().check_limit(f"turn:{conversation_id}")
