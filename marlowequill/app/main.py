import asyncio
import contextlib
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, Sequence

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from marlowequill.app.api.generate import router as generate_router
from marlowequill.app.core.config import Settings, settings as default_settings
from marlowequill.app.core.http_client import init_http_client
from marlowequill.app.core.logging import get_logger, setup_logging
from marlowequill.app.exceptions import ContentServiceError
from marlowequill.app.middleware.rate_limit import (
    HEALTH_PATH,
    WINDOW_SECONDS,
    AdmissionPolicy,
    RateLimitMiddleware,
    Tier,
    build_admission_policies,
)
from marlowequill.app.middleware.rate_limit.middleware import TierResolver
from marlowequill.app.middleware.request_id import RequestIdMiddleware, get_request_id
from marlowequill.app.providers.base import BaseProvider
from marlowequill.app.providers.factory import create_provider
from marlowequill.app.services.content_generator import ContentGenerator
from marlowequill.app.services.content_store import ContentStore

HEALTH_MESSAGE = "Server is running"


async def _evict_expired_windows(
    policies: Sequence[AdmissionPolicy], interval: float
) -> None:
    """Periodically drop rate limit windows whose period has elapsed."""
    while True:
        await asyncio.sleep(interval)
        for policy in policies:
            await policy.limiter.cleanup()


def create_app(
    app_settings: Optional[Settings] = None,
    provider: Optional[BaseProvider] = None,
    store: Optional[ContentStore] = None,
    policies: Optional[Sequence[AdmissionPolicy]] = None,
    tier_resolver: Optional[TierResolver] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use instead of the global instance
        provider: Generation backend; built from settings when omitted
        store: Content store; built from settings when omitted
        policies: Admission policies; built from settings when omitted
        tier_resolver: Maps a request to its tier; the configured default
            tier is used when omitted

    Returns:
        Configured FastAPI application instance
    """
    app_settings = app_settings or default_settings

    setup_logging()
    logger = get_logger(__name__)

    content_store = store or ContentStore(
        output_dir=app_settings.output_dir,
        timeout=app_settings.storage_timeout_seconds,
    )
    admission_policies = list(policies) if policies is not None else build_admission_policies(
        app_settings.rate_limit
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Owns the shared HTTP client, the generation backend and the
        background task that evicts expired rate limit windows.
        """
        async with init_http_client(app_settings) as http_client:
            backend = provider or create_provider(app_settings, http_client)
            app.state.content_generator = ContentGenerator(backend, content_store)

            eviction = asyncio.create_task(
                _evict_expired_windows(admission_policies, WINDOW_SECONDS)
            )
            logger.info(
                "Application startup complete",
                extra={
                    "provider": backend.name,
                    "output_dir": str(content_store.output_dir),
                    "rate_limits": {
                        "global": app_settings.rate_limit.effective_requests_per_minute,
                        "tiers": app_settings.rate_limit.tier_limits(),
                    },
                },
            )
            try:
                yield
            finally:
                eviction.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await eviction

        logger.info("Application shutdown complete")

    app = FastAPI(
        title="MarloweQuill",
        description="Rate-limited written content generation",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = app_settings
    app.state.admission_policies = admission_policies

    # Middleware order: last added = outermost.
    app.add_middleware(
        RateLimitMiddleware,
        policies=admission_policies,
        tier_resolver=tier_resolver,
        default_tier=Tier(app_settings.rate_limit.default_tier),
        trust_forwarded_for=app_settings.rate_limit.trust_forwarded_for,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=[
            "X-Request-ID",
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
    )

    app.include_router(generate_router)

    @app.get(HEALTH_PATH, response_class=PlainTextResponse)
    async def health() -> str:
        """Liveness probe. Never rate limited."""
        return HEALTH_MESSAGE

    @app.exception_handler(ContentServiceError)
    async def service_error_handler(request: Request, exc: ContentServiceError) -> JSONResponse:
        """Handle service errors with their mapped status code."""
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Malformed or mistyped bodies are client errors like missing fields."""
        logger.info(
            "Rejected malformed request body",
            extra={"request_id": get_request_id(request), "errors": exc.errors()},
        )
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        The traceback is logged server-side and never returned to the client.
        """
        request_id = get_request_id(request)
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={
                "request_id": request_id,
                "exception_type": type(exc).__name__,
            },
        )

        content = {"error": "Internal server error", "request_id": request_id}
        if app_settings.debug:
            content["error"] = str(exc)
            content["exception_type"] = type(exc).__name__
        return JSONResponse(status_code=500, content=content)

    return app


def serve() -> None:
    """Run the service with uvicorn on the configured host and port."""
    uvicorn.run(
        "marlowequill.app.main:app",
        host=default_settings.host,
        port=default_settings.port,
        log_config=None,
    )


# Create the application instance
app = create_app()


if __name__ == "__main__":
    serve()
