"""Tests for the Gemini backend and provider construction."""

import json

import httpx
import pytest

from marlowequill.app.core.config import Settings
from marlowequill.app.exceptions import GenerationError
from marlowequill.app.providers import GeminiProvider, MockProvider, create_provider

BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


def _provider(handler, **kwargs) -> GeminiProvider:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GeminiProvider(
        base_url=BASE_URL,
        api_key="test-key",
        model="gemini-1.5-pro",
        http_client=client,
        **kwargs,
    )


def _text_response(*texts: str) -> dict:
    return {
        "candidates": [
            {"content": {"role": "model", "parts": [{"text": t} for t in texts]}}
        ]
    }


class TestGeminiProvider:

    @pytest.mark.asyncio
    async def test_request_shape(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["headers"] = request.headers
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_text_response("Hi"))

        provider = _provider(handler, max_output_tokens=512, temperature=0.2, top_p=0.9)
        await provider.generate("Write a poem about 'rain'")

        assert captured["url"] == f"{BASE_URL}/models/gemini-1.5-pro:generateContent"
        assert captured["headers"]["x-goog-api-key"] == "test-key"
        assert captured["body"]["contents"] == [
            {"role": "user", "parts": [{"text": "Write a poem about 'rain'"}]}
        ]
        assert captured["body"]["generationConfig"] == {
            "maxOutputTokens": 512,
            "temperature": 0.2,
            "topP": 0.9,
        }

    @pytest.mark.asyncio
    async def test_joins_text_parts(self):
        provider = _provider(lambda r: httpx.Response(200, json=_text_response("Hello, ", "world")))
        assert await provider.generate("prompt") == "Hello, world"

    @pytest.mark.asyncio
    async def test_candidate_without_text_is_empty(self):
        body = {"candidates": [{"content": {"parts": []}, "finishReason": "MAX_TOKENS"}]}
        provider = _provider(lambda r: httpx.Response(200, json=body))
        assert await provider.generate("prompt") == ""

    @pytest.mark.asyncio
    async def test_no_candidates_is_error(self):
        provider = _provider(lambda r: httpx.Response(200, json={}))

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("prompt")

        assert exc_info.value.message == "Gemini API Error: empty response from model"

    @pytest.mark.asyncio
    async def test_blocked_prompt_reports_reason(self):
        body = {"promptFeedback": {"blockReason": "SAFETY"}}
        provider = _provider(lambda r: httpx.Response(200, json=body))

        with pytest.raises(GenerationError, match=r"prompt blocked \(SAFETY\)"):
            await provider.generate("prompt")

    @pytest.mark.asyncio
    async def test_http_error_uses_backend_message(self):
        body = {"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}}
        provider = _provider(lambda r: httpx.Response(429, json=body))

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("prompt")

        assert exc_info.value.message == "Gemini API Error: Resource has been exhausted"
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_http_error_without_body(self):
        provider = _provider(lambda r: httpx.Response(503, text="upstream down"))

        with pytest.raises(GenerationError, match="Gemini API Error: HTTP 503"):
            await provider.generate("prompt")

    @pytest.mark.asyncio
    async def test_malformed_body(self):
        provider = _provider(lambda r: httpx.Response(200, text="<html>"))

        with pytest.raises(GenerationError, match="malformed response body"):
            await provider.generate("prompt")

    @pytest.mark.parametrize(
        "body",
        [
            [],
            ["x"],
            {"candidates": ["x"]},
            {"candidates": [{"content": "text"}]},
            {"candidates": [{"content": {"parts": "text"}}]},
            {"candidates": [{"content": {"parts": [{"text": 42}]}}]},
        ],
    )
    @pytest.mark.asyncio
    async def test_unexpected_shape_is_generation_error(self, body):
        provider = _provider(lambda r: httpx.Response(200, json=body))

        with pytest.raises(GenerationError) as exc_info:
            await provider.generate("prompt")

        assert exc_info.value.message == "Gemini API Error: malformed response body"

    @pytest.mark.asyncio
    async def test_null_text_part_is_empty(self):
        body = {"candidates": [{"content": {"parts": [{"text": None}, {"text": "ok"}]}}]}
        provider = _provider(lambda r: httpx.Response(200, json=body))
        assert await provider.generate("prompt") == "ok"

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(GenerationError, match="Gemini API Error: request timed out"):
            await _provider(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GenerationError, match="Gemini API Error: connection refused"):
            await _provider(handler).generate("prompt")

    @pytest.mark.asyncio
    async def test_failure_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(500, json={"error": {"message": "internal"}})

        with pytest.raises(GenerationError):
            await _provider(handler).generate("prompt")

        assert len(calls) == 1


class TestCreateProvider:

    @pytest.fixture
    def isolated_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("MARLOWEQUILL_CONFIG_FILE", str(tmp_path / "absent.yaml"))
        monkeypatch.delenv("MARLOWEQUILL_MOCK_PROVIDER", raising=False)
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    def test_mock_mode(self, isolated_env):
        provider = create_provider(Settings(_env_file=None, mock_provider=True))
        assert isinstance(provider, MockProvider)

    def test_gemini_from_settings(self, isolated_env):
        app_settings = Settings(
            _env_file=None,
            gemini_api_key="abc",
            default_models=["gemini-1.5-flash", "gemini-1.5-pro"],
            max_tokens=1024,
        )

        provider = create_provider(app_settings)

        assert isinstance(provider, GeminiProvider)
        assert provider.model == "gemini-1.5-flash"
        assert provider.max_output_tokens == 1024
        assert provider.headers["x-goog-api-key"] == "abc"

    def test_missing_key_still_builds_provider(self, isolated_env):
        provider = create_provider(Settings(_env_file=None))
        assert isinstance(provider, GeminiProvider)
        assert provider.api_key == ""
