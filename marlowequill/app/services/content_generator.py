"""Generation pipeline: prompt construction, backend call, persistence."""

from typing import Optional

from marlowequill.app.core.logging import get_log_context, get_logger
from marlowequill.app.exceptions import GenerationError, StorageError
from marlowequill.app.providers.base import BaseProvider
from marlowequill.app.services.content_store import ContentStore
from marlowequill.app.services.models import (
    GenerationOutcome,
    GenerationRequest,
    GenerationResult,
    RequestState,
)
from marlowequill.app.services.prompt_builder import build_prompt

logger = get_logger(__name__)


class ContentGenerator:
    """Runs one generation request end to end.

    The backend is called exactly once per ``run``; failures are not retried.
    Backend and storage failures are returned as a failed GenerationOutcome
    instead of propagating.
    """

    def __init__(self, provider: BaseProvider, store: ContentStore):
        self.provider = provider
        self.store = store

    async def generate_content(self, request: GenerationRequest) -> str:
        """Build the prompt and call the backend.

        Raises:
            GenerationError: If the backend fails
        """
        prompt = build_prompt(request)
        content = await self.provider.generate(prompt)
        return content or ""

    async def run(
        self,
        request: GenerationRequest,
        request_id: Optional[str] = None,
    ) -> GenerationOutcome:
        log_context = get_log_context(
            request_id=request_id,
            content_type=request.content_type,
            provider=self.provider.name,
        )

        try:
            content = await self.generate_content(request)
        except GenerationError as e:
            logger.error(
                f"Generation failed: {e.message}",
                extra={**log_context, "state": RequestState.FAILED.value},
            )
            return GenerationOutcome.failure(e)

        logger.info(
            f"Generated {len(content)} characters",
            extra={**log_context, "state": RequestState.GENERATED.value},
        )

        try:
            locator = await self.store.save(content, request.content_type)
        except StorageError as e:
            logger.error(
                f"Saving generated content failed: {e.message}",
                extra={**log_context, "state": RequestState.FAILED.value},
            )
            return GenerationOutcome.failure(e)

        logger.info(
            f"Content saved to {locator}",
            extra={**log_context, "state": RequestState.SAVED.value},
        )
        return GenerationOutcome.success(GenerationResult(content=content, locator=locator))
