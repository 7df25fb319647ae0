"""Domain types for the generation pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from marlowequill.app.exceptions import ContentServiceError


class RequestState(str, Enum):
    """Lifecycle of a single generation request."""
    RECEIVED = "received"
    VALIDATED = "validated"
    ADMITTED = "admitted"
    GENERATED = "generated"
    SAVED = "saved"
    RESPONDED = "responded"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class GenerationRequest:
    """A validated description of the content to write."""
    content_type: str
    topic: str
    tone: Optional[str] = None
    length: Optional[int] = None
    additional_context: Optional[str] = None


@dataclass(frozen=True)
class GenerationResult:
    """Generated content and the locator it was saved under."""
    content: str
    locator: str


@dataclass(frozen=True)
class GenerationOutcome:
    """Tagged result of a generation attempt: either a result or an error."""
    result: Optional[GenerationResult] = None
    error: Optional[ContentServiceError] = None
    state: RequestState = RequestState.SAVED

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, result: GenerationResult) -> "GenerationOutcome":
        return cls(result=result)

    @classmethod
    def failure(
        cls, error: ContentServiceError, state: RequestState = RequestState.FAILED
    ) -> "GenerationOutcome":
        return cls(error=error, state=state)
