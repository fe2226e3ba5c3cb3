"""Rate limiting for API endpoints."""

import math
import time
from typing import Callable, Dict, Tuple

from fastapi import HTTPException


class RateLimiter:
    """In-memory fixed-window rate limiter keyed by an arbitrary string."""

    def __init__(self, clock: Callable[[], float] = time.time):
        """Initialize rate limiter."""
        self.clock = clock
        # key -> (window start, requests seen in window)
        self.windows: Dict[str, Tuple[float, int]] = {}

    def is_allowed(
        self,
        key: str,
        max_requests: int = 60,
        window_seconds: int = 60,
    ) -> bool:
        """
        Count one request against ``key``.

        Args:
            key: Limiter bucket, e.g. ``admin:imports:<user id>``
            max_requests: Requests allowed per window
            window_seconds: Window length in seconds

        Returns:
            True if request is allowed

        Raises:
            HTTPException: If rate limit exceeded
        """
        now = self.clock()
        window_start, count = self.windows.get(key, (now, 0))

        if now - window_start >= window_seconds:
            window_start, count = now, 0

        if count >= max_requests:
            retry_after = max(1, math.ceil(window_start + window_seconds - now))
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                headers={"Retry-After": str(retry_after)}
            )

        self.windows[key] = (window_start, count + 1)
        return True

    def cleanup_old_entries(self, window_seconds: int = 60):
        """Drop windows that have expired."""
        now = self.clock()
        for key in list(self.windows.keys()):
            window_start, _ = self.windows[key]
            if now - window_start >= window_seconds:
                del self.windows[key]

    def reset(self):
        self.windows.clear()


# Global rate limiter instance
rate_limiter = RateLimiter()


def check_rate_limit(key: str, max_requests: int, window_seconds: int = 60) -> bool:
    """Apply the global limiter to ``key``."""
    return rate_limiter.is_allowed(key, max_requests, window_seconds)
