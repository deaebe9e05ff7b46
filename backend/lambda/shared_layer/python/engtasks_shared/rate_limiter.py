"""engtasks_shared.rate_limiter — Per-API-key sliding-window rate limiting.

State lives in the limiter instance, which the Lambda module owns for the
life of the execution environment. A cold start begins with an empty window,
and concurrent execution environments do not share counts.
"""

from __future__ import annotations

import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional

__all__ = ["RateLimitDecision", "SlidingWindowRateLimiter"]


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
        }
        if self.retry_after is not None:
            out["Retry-After"] = str(self.retry_after)
        return out


class SlidingWindowRateLimiter:
    """Allow at most ``max_requests`` per key within any ``window_seconds`` span."""

    def __init__(
        self,
        max_requests: int = 100,
        window_seconds: float = 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = int(max_requests)
        self.window_seconds = float(window_seconds)
        self._clock = clock
        self._requests: Dict[str, Deque[float]] = {}

    def _live(self, key: str, now: float) -> Deque[float]:
        stamps = self._requests.setdefault(key, deque())
        window_start = now - self.window_seconds
        while stamps and stamps[0] < window_start:
            stamps.popleft()
        return stamps

    def check(self, key: str, now: Optional[float] = None) -> RateLimitDecision:
        """Record a request for ``key`` if it fits in the window."""
        now = self._clock() if now is None else now
        stamps = self._live(key, now)
        reset_at = (stamps[0] if stamps else now) + self.window_seconds

        if len(stamps) >= self.max_requests:
            retry_after = max(1, math.ceil(reset_at - now))
            return RateLimitDecision(
                allowed=False,
                limit=self.max_requests,
                remaining=0,
                reset_at=reset_at,
                retry_after=retry_after,
            )

        stamps.append(now)
        return RateLimitDecision(
            allowed=True,
            limit=self.max_requests,
            remaining=self.max_requests - len(stamps),
            reset_at=reset_at,
        )

    def request_count(self, key: str, now: Optional[float] = None) -> int:
        now = self._clock() if now is None else now
        return len(self._live(key, now))

    def clear(self, key: Optional[str] = None) -> None:
        if key is None:
            self._requests.clear()
        else:
            self._requests.pop(key, None)
