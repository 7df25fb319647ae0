"""Rate limiting middleware.

Applies the configured admission policies to every request, rejects with
HTTP 429 when any policy denies admission, and publishes the binding
rate limit state to the route via ``request.state.rate_limit``.
"""

import hashlib
from typing import Callable, Optional, Sequence

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from marlowequill.app.core.logging import get_log_context, get_logger
from marlowequill.app.exceptions import RateLimitError
from marlowequill.app.middleware.rate_limit.models import RateLimitResult, Tier
from marlowequill.app.middleware.rate_limit.policies import AdmissionPolicy
from marlowequill.app.services.models import RequestState

logger = get_logger(__name__)

TierResolver = Callable[[Request], Tier]


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_at),
    }


def rate_limit_response(exc: RateLimitError) -> JSONResponse:
    """Build the 429 response for a rejected request."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "retryAfter": exc.retry_after},
        headers={
            "Retry-After": str(exc.retry_after),
            "X-RateLimit-Limit": str(exc.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(exc.reset_at),
        },
    )


def get_rate_limit(request: Request) -> Optional[RateLimitResult]:
    """Rate limit state recorded for this request, if any policy applied."""
    return getattr(request.state, "rate_limit", None)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Middleware to enforce rate limits on requests.

    Clients are identified by source address and User-Agent. Policies run in
    order and the first rejection short-circuits the rest, so a request
    denied globally never consumes tiered quota.
    """

    def __init__(
        self,
        app,
        policies: Sequence[AdmissionPolicy],
        tier_resolver: Optional[TierResolver] = None,
        default_tier: Tier = Tier.FREE,
        trust_forwarded_for: bool = False,
    ):
        super().__init__(app)
        self.policies = list(policies)
        self.tier_resolver = tier_resolver
        self.default_tier = default_tier
        self.trust_forwarded_for = trust_forwarded_for

    def _get_client_key(self, request: Request) -> str:
        """Get rate limit key for the request.

        The key combines client address and User-Agent, hashed with SHA-256
        so raw addresses are never held in memory. Clients behind a shared
        NAT with identical agents share a bucket.

        Args:
            request: FastAPI request object

        Returns:
            Rate limit key string
        """
        client_ip = None
        if self.trust_forwarded_for:
            forwarded = request.headers.get("X-Forwarded-For")
            if forwarded:
                client_ip = forwarded.split(",")[0].strip()
        if not client_ip:
            client_ip = request.client.host if request.client else "unknown"

        user_agent = request.headers.get("User-Agent", "")
        digest = hashlib.sha256(f"{client_ip}-{user_agent}".encode()).hexdigest()[:32]
        return f"ratelimit:client:{digest}"

    def _resolve_tier(self, request: Request) -> Tier:
        if self.tier_resolver is None:
            return self.default_tier
        return self.tier_resolver(request)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint
    ) -> Response:
        """Process request with rate limiting."""
        path = request.url.path
        applicable = [p for p in self.policies if p.applies_to(path)]
        if not applicable:
            return await call_next(request)

        key = self._get_client_key(request)
        tier = self._resolve_tier(request)
        log_context = get_log_context(
            request_id=getattr(request.state, "request_id", None),
            client_key=key,
            tier=tier.value,
            path=path,
        )
        logger.debug(
            "Checking rate limits",
            extra={**log_context, "state": RequestState.RECEIVED.value},
        )

        results: list[RateLimitResult] = []
        for policy in applicable:
            result = await policy.admit(key, tier)
            if not result.admitted:
                logger.warning(
                    "Rate limit exceeded",
                    extra={
                        **log_context,
                        "state": RequestState.REJECTED.value,
                        "policy": policy.name,
                    },
                )
                return rate_limit_response(
                    RateLimitError(
                        retry_after=result.retry_after or 1,
                        limit=result.limit,
                        reset_at=result.reset_at,
                        message=policy.rejection_message(tier),
                    )
                )
            results.append(result)

        # The most constrained layer is what the client will hit first
        binding = min(results, key=lambda r: (r.remaining, -r.reset_at))
        request.state.rate_limit = binding
        request.state.rate_limit_tier = tier
        logger.debug(
            f"Request admitted with {binding.remaining} remaining",
            extra={**log_context, "state": RequestState.ADMITTED.value},
        )

        response = await call_next(request)
        response.headers.update(rate_limit_headers(binding))
        return response
