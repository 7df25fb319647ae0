"""Rate limit backends.

Only an in-memory backend exists: window state lives for the lifetime of
the process and is lost on restart.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, Mapping, Optional

from marlowequill.app.core.logging import get_logger
from marlowequill.app.middleware.rate_limit.models import (
    RateLimitResult,
    RateLimitWindow,
    Tier,
)

logger = get_logger(__name__)

WINDOW_SECONDS = 60


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    @abstractmethod
    async def check_and_record(
        self, key: str, tier: Optional[Tier] = None
    ) -> RateLimitResult:
        """Record a request for ``key`` and decide whether it is admitted.

        Args:
            key: Rate limit key
            tier: Tier whose ceiling applies; None uses the base ceiling

        Returns:
            RateLimitResult with admission decision and window telemetry
        """

    @abstractmethod
    async def cleanup(self) -> int:
        """Drop expired state. Returns the number of entries removed."""


class InMemoryRateLimiter(RateLimitBackend):
    """Fixed-window rate limiter keyed by client identity.

    Every call counts toward the window, including calls that end up
    rejected, so a client hammering the endpoint stays limited until the
    window rolls over. A call is admitted while the post-increment count is
    within the ceiling.

    Memory optimization:
    - Uses OrderedDict for LRU cache behavior
    - Limits max entries to prevent unbounded memory growth
    - Expired windows are dropped by ``cleanup``
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        requests_per_minute: int,
        tier_limits: Optional[Mapping[Tier, int]] = None,
        window_seconds: int = WINDOW_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize rate limiter.

        Args:
            requests_per_minute: Ceiling used when no tier is given
            tier_limits: Per-tier ceilings, used when a tier is given
            window_seconds: Window length in seconds
            max_entries: Maximum number of windows to store (LRU eviction)
            clock: Source of the current Unix time
        """
        if requests_per_minute < 1:
            raise ValueError("requests_per_minute must be at least 1")
        self.requests_per_minute = requests_per_minute
        self.tier_limits = dict(tier_limits or {})
        self.window_seconds = window_seconds
        self._max_entries = max_entries
        self._clock = clock

        self._windows: OrderedDict[str, RateLimitWindow] = OrderedDict()
        self._lock = asyncio.Lock()

    def limit_for(self, tier: Optional[Tier] = None) -> int:
        """Ceiling for ``tier``, falling back to the base ceiling."""
        if tier is not None and tier in self.tier_limits:
            return self.tier_limits[tier]
        return self.requests_per_minute

    def __len__(self) -> int:
        return len(self._windows)

    def _enforce_lru_limit(self) -> None:
        """Enforce max entries limit using LRU eviction."""
        if len(self._windows) >= self._max_entries:
            # Remove oldest 20% of entries
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(min(remove_count, len(self._windows))):
                evicted, _ = self._windows.popitem(last=False)
                logger.debug("Evicted rate limit window", extra={"client_key": evicted})

    async def check_and_record(
        self, key: str, tier: Optional[Tier] = None
    ) -> RateLimitResult:
        """Check-and-increment, atomic with respect to other calls."""
        limit = self.limit_for(tier)
        async with self._lock:
            now = self._clock()

            window = self._windows.get(key)
            if window is None:
                self._enforce_lru_limit()
            else:
                self._windows.move_to_end(key)

            # Reset window on first sight or once the period has elapsed
            if window is None or now >= window.window_start + self.window_seconds:
                window = RateLimitWindow(key=key, limit=limit, window_start=now)
                self._windows[key] = window

            window.limit = limit
            window.count += 1
            count = window.count
            reset_at = window.window_start + self.window_seconds

        admitted = count <= limit
        result = RateLimitResult(
            admitted=admitted,
            limit=limit,
            remaining=max(0, limit - count),
            reset_at=math.ceil(reset_at),
        )
        if not admitted:
            result.retry_after = min(
                self.window_seconds, max(1, math.ceil(reset_at - now))
            )
        return result

    async def cleanup(self) -> int:
        """Drop windows whose period has elapsed."""
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, window in self._windows.items()
                if now >= window.window_start + self.window_seconds
            ]
            for key in expired:
                del self._windows[key]
        if expired:
            logger.debug(f"Cleaned up {len(expired)} expired rate limit windows")
        return len(expired)
