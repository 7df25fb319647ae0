"""Admission policies applied by the rate limit middleware.

Each policy owns one rate limiter and decides which request paths it covers.
The middleware runs the applicable policies in order; a request is admitted
only if every one of them admits it.
"""

from abc import ABC, abstractmethod
from typing import Iterable

from marlowequill.app.core.config import RateLimitSettings
from marlowequill.app.middleware.rate_limit.backends import (
    InMemoryRateLimiter,
    RateLimitBackend,
)
from marlowequill.app.middleware.rate_limit.models import RateLimitResult, Tier

HEALTH_PATH = "/health"
GENERATE_PATH = "/api/generate"


class AdmissionPolicy(ABC):
    """A single rate limiting layer."""

    name: str = "policy"

    def __init__(self, limiter: RateLimitBackend):
        self.limiter = limiter

    @abstractmethod
    def applies_to(self, path: str) -> bool:
        """Whether requests to ``path`` are subject to this policy."""

    @abstractmethod
    def rejection_message(self, tier: Tier) -> str:
        """Error message returned to a rejected client."""

    async def admit(self, key: str, tier: Tier) -> RateLimitResult:
        return await self.limiter.check_and_record(key)


class GlobalAdmissionPolicy(AdmissionPolicy):
    """Per-client ceiling applied to every route except the exempt ones."""

    name = "global"

    def __init__(
        self,
        limiter: RateLimitBackend,
        exempt_paths: Iterable[str] = (HEALTH_PATH,),
    ):
        super().__init__(limiter)
        self.exempt_paths = frozenset(exempt_paths)

    def applies_to(self, path: str) -> bool:
        return path not in self.exempt_paths

    def rejection_message(self, tier: Tier) -> str:
        return "Too many requests, please try again later"


class TieredAdmissionPolicy(AdmissionPolicy):
    """Tier-dependent ceiling applied to the generation route only."""

    name = "tiered"

    def __init__(
        self,
        limiter: RateLimitBackend,
        paths: Iterable[str] = (GENERATE_PATH,),
    ):
        super().__init__(limiter)
        self.paths = frozenset(paths)

    def applies_to(self, path: str) -> bool:
        return path in self.paths

    def rejection_message(self, tier: Tier) -> str:
        return f"Rate limit exceeded for {tier.value} tier"

    async def admit(self, key: str, tier: Tier) -> RateLimitResult:
        return await self.limiter.check_and_record(key, tier)


def build_admission_policies(
    rate_limit: RateLimitSettings,
    **limiter_kwargs,
) -> list[AdmissionPolicy]:
    """Build the global and tiered policies from configuration.

    Zero or missing limits resolve to the documented defaults inside
    ``RateLimitSettings``. Extra keyword arguments go to every limiter.
    """
    limiter_kwargs.setdefault("max_entries", rate_limit.max_entries)

    base = rate_limit.effective_requests_per_minute
    tier_limits = {Tier(name): limit for name, limit in rate_limit.tier_limits().items()}

    return [
        GlobalAdmissionPolicy(InMemoryRateLimiter(base, **limiter_kwargs)),
        TieredAdmissionPolicy(
            InMemoryRateLimiter(tier_limits[Tier.FREE], tier_limits=tier_limits, **limiter_kwargs)
        ),
    ]
