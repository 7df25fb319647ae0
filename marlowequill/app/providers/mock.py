"""Mock provider for development and tests.

This provider produces deterministic text without making external API
calls. Enable by setting environment variable:
    MARLOWEQUILL_MOCK_PROVIDER=true
"""

import asyncio
from typing import Optional

from marlowequill.app.exceptions import GenerationError
from marlowequill.app.providers.base import BaseProvider


class MockProvider(BaseProvider):
    """Mock generation backend that echoes the prompt into canned content.

    Features:
    - Optional fixed delay to simulate backend latency
    - Configurable failure message for testing error handling
    - Records every prompt it receives
    """

    name = "mock"

    def __init__(
        self,
        base_url: str = "http://mock.provider",
        api_key: str = "mock-key",
        delay: float = 0.0,
        failure_message: Optional[str] = None,
        response: Optional[str] = None,
    ):
        """Initialize the mock provider.

        Args:
            base_url: Not used, provided for API compatibility
            api_key: Not used, provided for API compatibility
            delay: Seconds to sleep before answering
            failure_message: If set, every call raises GenerationError with it
            response: Fixed text to return instead of the generated default
        """
        super().__init__(base_url, api_key)
        self.delay = delay
        self.failure_message = failure_message
        self.response = response
        self.prompts: list[str] = []

    @property
    def call_count(self) -> int:
        return len(self.prompts)

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.failure_message is not None:
            raise GenerationError(self.failure_message)
        if self.response is not None:
            return self.response
        return f"Mock content generated for the instruction: {prompt}."
