"""Rate limiting for the content service.

Two layers are applied per request: a global per-client ceiling on every
route except health, and a tier-dependent ceiling on the generation route.
Window state is held in memory for the lifetime of the process.
"""

from marlowequill.app.middleware.rate_limit.backends import (
    WINDOW_SECONDS,
    InMemoryRateLimiter,
    RateLimitBackend,
)
from marlowequill.app.middleware.rate_limit.middleware import (
    RateLimitMiddleware,
    get_rate_limit,
    rate_limit_headers,
    rate_limit_response,
)
from marlowequill.app.middleware.rate_limit.models import (
    RateLimitResult,
    RateLimitWindow,
    Tier,
)
from marlowequill.app.middleware.rate_limit.policies import (
    GENERATE_PATH,
    HEALTH_PATH,
    AdmissionPolicy,
    GlobalAdmissionPolicy,
    TieredAdmissionPolicy,
    build_admission_policies,
)

__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitWindow",
    "Tier",
    # Backends
    "RateLimitBackend",
    "InMemoryRateLimiter",
    "WINDOW_SECONDS",
    # Policies
    "AdmissionPolicy",
    "GlobalAdmissionPolicy",
    "TieredAdmissionPolicy",
    "build_admission_policies",
    "GENERATE_PATH",
    "HEALTH_PATH",
    # Middleware
    "RateLimitMiddleware",
    "get_rate_limit",
    "rate_limit_headers",
    "rate_limit_response",
]
