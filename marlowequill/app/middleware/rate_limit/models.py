"""Rate limiting data models.

This module contains the tier enumeration and dataclasses for rate limit
state and results.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Tier(str, Enum):
    """Client classification controlling the generation route ceiling."""
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    admitted: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: Optional[int] = None

    def telemetry(self) -> dict:
        """Rate limit state as reported in response bodies."""
        return {"remaining": self.remaining, "reset": self.reset_at}


@dataclass
class RateLimitWindow:
    """Fixed-window counter for a single client key."""
    key: str
    limit: int
    count: int = 0
    window_start: float = field(default_factory=time.time)
