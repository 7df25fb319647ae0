"""Generation API endpoint."""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from marlowequill.app.core.logging import get_log_context, get_logger
from marlowequill.app.exceptions import ValidationError
from marlowequill.app.middleware.rate_limit import GENERATE_PATH, get_rate_limit
from marlowequill.app.middleware.request_id import get_request_id
from marlowequill.app.services.content_generator import ContentGenerator
from marlowequill.app.services.models import GenerationRequest, RequestState

router = APIRouter()
logger = get_logger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


class GenerateRequest(BaseModel):
    """Inbound request body.

    Every field is optional at the schema level so that a missing
    ``content_type`` or ``topic`` is reported as a 400 with the same error
    shape as every other failure.
    """
    content_type: Optional[str] = None
    topic: Optional[str] = None
    tone: Optional[str] = None
    length: Optional[int] = None
    additional_context: Optional[str] = None

    def to_generation_request(self) -> GenerationRequest:
        """Validate and normalize into a GenerationRequest.

        Raises:
            ValidationError: If content_type or topic is missing or blank
        """
        content_type = _clean(self.content_type)
        topic = _clean(self.topic)
        if not content_type or not topic:
            raise ValidationError("Content type and topic are required")

        return GenerationRequest(
            content_type=content_type,
            topic=topic,
            tone=_clean(self.tone),
            length=self.length if self.length and self.length > 0 else None,
            additional_context=_clean(self.additional_context),
        )


def get_content_generator(request: Request) -> ContentGenerator:
    """Get the content generator created during application startup."""
    return request.app.state.content_generator


@router.post(GENERATE_PATH, response_model=None)
async def generate_content(
    payload: GenerateRequest,
    request: Request,
    generator: ContentGenerator = Depends(get_content_generator),
) -> JSONResponse:
    """Generate, persist and return a piece of written content.

    By the time this runs the rate limit middleware has admitted the request.
    Validation failures raise before the backend is touched; backend and
    storage failures come back as a failed outcome and are answered with
    500 plus the current rate limit state.
    """
    request_id = get_request_id(request)
    rate_limit = get_rate_limit(request)

    tier = getattr(request.state, "rate_limit_tier", None)
    try:
        generation_request = payload.to_generation_request()
    except ValidationError as e:
        logger.info(
            f"Generation request rejected: {e.message}",
            extra=get_log_context(request_id=request_id, state=RequestState.REJECTED.value),
        )
        raise

    log_context = get_log_context(
        request_id=request_id,
        tier=tier.value if tier is not None else None,
        content_type=generation_request.content_type,
    )
    logger.debug(
        "Generation request validated",
        extra={**log_context, "state": RequestState.VALIDATED.value},
    )

    outcome = await generator.run(generation_request, request_id=request_id)

    body: Dict[str, Any]
    if outcome.ok:
        body = {
            "content": outcome.result.content,
            "filename": outcome.result.locator,
        }
        status_code = 200
    else:
        body = {"error": outcome.error.message}
        status_code = outcome.error.status_code

    if rate_limit is not None:
        body["rateLimit"] = rate_limit.telemetry()

    logger.info(
        f"Generation request finished with {status_code}",
        extra={
            **log_context,
            "state": (RequestState.RESPONDED if outcome.ok else RequestState.FAILED).value,
            "status_code": status_code,
        },
    )
    return JSONResponse(status_code=status_code, content=body)
