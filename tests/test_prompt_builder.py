"""Tests for prompt construction."""

import pytest

from marlowequill.app.services.models import GenerationRequest
from marlowequill.app.services.prompt_builder import build_prompt


def test_minimal_prompt():
    request = GenerationRequest(content_type="article", topic="bees")
    assert build_prompt(request) == "Write a article about 'bees'"


def test_all_fields_in_fixed_order():
    request = GenerationRequest(
        content_type="blog_post",
        topic="urban gardening",
        tone="friendly",
        length=500,
        additional_context="Target beginners",
    )

    assert build_prompt(request) == (
        "Write a blog_post about 'urban gardening' in a friendly tone. "
        "Aim for approximately 500 words. Additional context: Target beginners"
    )


@pytest.mark.parametrize("length", [None, 0, -20])
def test_non_positive_length_is_omitted(length):
    request = GenerationRequest(content_type="poem", topic="rain", length=length)
    assert "Aim for" not in build_prompt(request)


def test_context_without_tone_or_length():
    request = GenerationRequest(
        content_type="email", topic="launch", additional_context="Keep it short"
    )
    assert build_prompt(request) == (
        "Write a email about 'launch'. Additional context: Keep it short"
    )


def test_empty_tone_is_omitted():
    request = GenerationRequest(content_type="story", topic="dragons", tone="")
    assert build_prompt(request) == "Write a story about 'dragons'"


def test_topic_is_not_escaped():
    request = GenerationRequest(content_type="article", topic="it's complicated")
    assert build_prompt(request) == "Write a article about 'it's complicated'"
