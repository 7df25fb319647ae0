"""Provider construction from application settings."""

from typing import Optional

import httpx

from marlowequill.app.core.config import Settings
from marlowequill.app.core.logging import get_logger
from marlowequill.app.providers.base import BaseProvider
from marlowequill.app.providers.gemini import GeminiProvider
from marlowequill.app.providers.mock import MockProvider

logger = get_logger(__name__)


def create_provider(
    app_settings: Settings,
    http_client: Optional[httpx.AsyncClient] = None,
) -> BaseProvider:
    """Create the generation backend selected by configuration.

    Args:
        app_settings: Application settings
        http_client: Shared HTTP client for connection pooling

    Returns:
        A MockProvider when mock mode is on, otherwise a GeminiProvider
    """
    if app_settings.mock_provider:
        logger.info("Using mock generation provider")
        return MockProvider()

    if not app_settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; generation requests will fail")

    logger.info(f"Using Gemini provider with model {app_settings.model_name}")
    return GeminiProvider(
        base_url=app_settings.gemini_base_url,
        api_key=app_settings.gemini_api_key,
        model=app_settings.model_name,
        http_client=http_client,
        timeout=app_settings.httpx_read_timeout,
        max_output_tokens=app_settings.max_tokens,
        temperature=app_settings.temperature,
        top_p=app_settings.top_p,
    )
