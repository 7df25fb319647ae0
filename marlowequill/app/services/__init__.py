"""Services for the content service."""

from marlowequill.app.services.content_generator import ContentGenerator
from marlowequill.app.services.content_store import ContentStore
from marlowequill.app.services.models import (
    GenerationOutcome,
    GenerationRequest,
    GenerationResult,
    RequestState,
)
from marlowequill.app.services.prompt_builder import build_prompt

__all__ = [
    "ContentGenerator",
    "ContentStore",
    "GenerationOutcome",
    "GenerationRequest",
    "GenerationResult",
    "RequestState",
    "build_prompt",
]
