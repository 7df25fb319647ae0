from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

import httpx


class BaseProvider(ABC):
    """Base class for generation backends.

    Subclasses can accept an external httpx.AsyncClient for connection pooling,
    or create their own if not provided.

    Implementations must raise ``GenerationError`` for every failure and must
    never retry: one call to ``generate`` is one backend request.
    """

    name: str = "base"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0
    ):
        """Initialize the provider.

        Args:
            base_url: The API base URL
            api_key: The API key for authentication
            http_client: Optional shared HTTP client for connection pooling
            timeout: Request timeout in seconds, used for a private client
        """
        self._http_client = http_client
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.timeout = timeout
        self.headers = self._build_headers()

    def _build_headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    @asynccontextmanager
    async def _client_context(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the shared client, or a per-call client that is closed after."""
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    def _get_endpoint_url(self, endpoint: str) -> str:
        return f"{self.base_url}{endpoint}"

    @abstractmethod
    async def generate(self, prompt: str) -> str:
        """Generate text for a prompt.

        Args:
            prompt: Natural-language instruction

        Returns:
            Generated text; empty string if the backend answered with no text

        Raises:
            GenerationError: If the backend call fails
        """
