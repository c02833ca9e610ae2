"""
app/services/rate_limit_service.py

Purpose: Per-client request limiting

- Fixed-window request counters keyed by caller (usually client address)
- Entries evicted once their window has passed
- Lives for the process lifetime; one instance per app, injected via
  dependencies so tests and deployments can swap it
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from app.core.logging import get_logger
from utils.time_utils import utcnow, minutes_remaining

logger = get_logger(__name__)


@dataclass
class _Window:
    count: int
    reset_at: datetime


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    retry_after_minutes: Optional[int] = None


class RequestCounter:
    """In-memory request counter with TTL-based eviction."""

    def __init__(
        self,
        max_requests: int,
        window: timedelta,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_requests = max_requests
        self.window = window
        self.clock = clock
        self._windows: Dict[str, _Window] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        """
        Records one request for `key` and decides whether it is allowed.
        """
        now = self.clock()

        with self._lock:
            self._evict_expired(now)

            entry = self._windows.get(key)
            if entry is None:
                self._windows[key] = _Window(count=1, reset_at=now + self.window)
                return RateLimitDecision(allowed=True, remaining=self.max_requests - 1)

            if entry.count >= self.max_requests:
                retry_after = max(1, minutes_remaining(entry.reset_at - now))
                logger.warning(f"Request limit reached for {key}", extra={"client": key})
                return RateLimitDecision(allowed=False, remaining=0, retry_after_minutes=retry_after)

            entry.count += 1
            return RateLimitDecision(allowed=True, remaining=self.max_requests - entry.count)

    def _evict_expired(self, now: datetime) -> None:
        expired = [key for key, entry in self._windows.items() if now >= entry.reset_at]
        for key in expired:
            del self._windows[key]

    def evict_expired(self) -> int:
        """Drops every window that has passed. Returns the number dropped."""
        with self._lock:
            before = len(self._windows)
            self._evict_expired(self.clock())
            return before - len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
