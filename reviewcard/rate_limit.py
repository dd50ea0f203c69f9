"""Per-client fixed-window rate limiting for the render endpoint.

Counters live in process memory, so limits only hold for a single server
instance.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Optional

from .cache.ttl_cache import Clock
from .config import settings
from .errors import RateLimitError
from .utils import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitDecision:
    """Outcome of a rate limit check."""

    allowed: bool
    remaining: int
    retry_after: int = 0


@dataclass
class _Window:
    count: int
    reset_at: float


class RateLimiter:
    """Allows `limit` requests per client inside each fixed window."""

    def __init__(
        self,
        limit: Optional[int] = None,
        window_seconds: Optional[float] = None,
        clock: Optional[Clock] = None,
    ):
        self.limit = limit if limit is not None else settings.rate_limit_requests
        self.window_seconds = (
            window_seconds if window_seconds is not None else settings.rate_limit_window_seconds
        )
        self._clock = clock or time.time
        self._windows: dict[str, _Window] = {}
        self._lock = threading.Lock()

    def check(self, client_id: str) -> RateLimitDecision:
        """Record one request for client_id and report whether it is allowed."""
        with self._lock:
            now = self._clock()
            window = self._windows.get(client_id)
            if window is None or now >= window.reset_at:
                window = _Window(count=0, reset_at=now + self.window_seconds)
                self._windows[client_id] = window

            if window.count >= self.limit:
                retry_after = max(1, math.ceil(window.reset_at - now))
                return RateLimitDecision(allowed=False, remaining=0, retry_after=retry_after)

            window.count += 1
            return RateLimitDecision(allowed=True, remaining=self.limit - window.count)

    def enforce(self, client_id: str) -> RateLimitDecision:
        """
        Like check(), but raises when the client is over its limit.

        Raises:
            RateLimitError: carrying the seconds until the window resets
        """
        decision = self.check(client_id)
        if not decision.allowed:
            logger.warning(f"Rate limit exceeded for {client_id}")
            raise RateLimitError(
                "Too many requests. Please try again later.",
                retry_after=decision.retry_after,
            )
        return decision

    def prune(self) -> int:
        """Drop windows that have already reset."""
        with self._lock:
            now = self._clock()
            stale = [k for k, w in self._windows.items() if now >= w.reset_at]
            for key in stale:
                del self._windows[key]
        return len(stale)

    def __len__(self) -> int:
        with self._lock:
            return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
