"""Prompt construction for content generation."""

from marlowequill.app.services.models import GenerationRequest


def build_prompt(request: GenerationRequest) -> str:
    """Turn a validated request into a natural-language instruction.

    Optional clauses are appended in a fixed order and each carries its own
    leading separator, so omitted fields leave no stray punctuation:

    >>> build_prompt(GenerationRequest(content_type="article", topic="bees"))
    "Write a article about 'bees'"
    """
    prompt = f"Write a {request.content_type} about '{request.topic}'"

    if request.tone:
        prompt += f" in a {request.tone} tone"

    if request.length is not None and request.length > 0:
        prompt += f". Aim for approximately {request.length} words"

    if request.additional_context:
        prompt += f". Additional context: {request.additional_context}"

    return prompt
