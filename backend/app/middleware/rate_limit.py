"""In-memory rate limiting for staff shift writes.

For multi-replica deployments, swap to Redis.
"""

from __future__ import annotations

import time
from collections import defaultdict

from fastapi import HTTPException, status

from backend.app.core.config import settings


class InMemoryRateLimiter:
    """Sliding-window in-memory rate limiter keyed by an arbitrary string."""

    def __init__(self, window_seconds: int = 60, max_attempts: int = 5) -> None:
        self._window = window_seconds
        self._max = max_attempts
        self._attempts: dict[str, list[float]] = defaultdict(list)

    def check(self, key: str) -> None:
        """Raise HTTP 429 if *key* has exceeded *max_attempts* in the window."""
        now = time.monotonic()
        recent = [t for t in self._attempts[key] if now - t < self._window]
        if len(recent) >= self._max:
            self._attempts[key] = recent
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many requests. Try again in {self._window} seconds.",
            )
        recent.append(now)
        self._attempts[key] = recent

    def reset(self) -> None:
        self._attempts.clear()


shift_write_limiter = InMemoryRateLimiter(
    window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
    max_attempts=settings.RATE_LIMIT_MAX_REQUESTS,
)
