"""HTTP client for the generation backend.

One ``httpx.AsyncClient`` is opened in the application lifespan and handed to
the provider, so concurrent generations share a single connection pool.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx

from marlowequill.app.core.config import Settings, settings as default_settings


def build_timeout(app_settings: Settings) -> httpx.Timeout:
    """Granular timeouts; the read timeout bounds a single generation call."""
    return httpx.Timeout(
        connect=app_settings.httpx_connect_timeout,
        read=app_settings.httpx_read_timeout,
        write=app_settings.httpx_write_timeout,
        pool=app_settings.httpx_pool_timeout,
    )


def build_limits(app_settings: Settings) -> httpx.Limits:
    return httpx.Limits(
        max_connections=app_settings.httpx_max_connections,
        max_keepalive_connections=app_settings.httpx_max_keepalive_connections,
        keepalive_expiry=app_settings.httpx_keepalive_expiry,
    )


@asynccontextmanager
async def init_http_client(
    app_settings: Settings | None = None,
) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Open the pooled client for the duration of the block.

    Used from the FastAPI lifespan::

        async with init_http_client(app_settings) as client:
            provider = create_provider(app_settings, client)
            yield
    """
    app_settings = app_settings or default_settings
    async with httpx.AsyncClient(
        timeout=build_timeout(app_settings),
        limits=build_limits(app_settings),
    ) as client:
        yield client
