"""Middleware package for the content service."""

from marlowequill.app.middleware.rate_limit import RateLimitMiddleware
from marlowequill.app.middleware.request_id import RequestIdMiddleware, get_request_id

__all__ = [
    "RateLimitMiddleware",
    "RequestIdMiddleware",
    "get_request_id",
]
