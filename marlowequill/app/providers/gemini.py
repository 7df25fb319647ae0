"""Gemini generation backend over the ``generateContent`` REST endpoint."""

from typing import Any, Dict, Optional

import httpx

from marlowequill.app.core.logging import get_logger
from marlowequill.app.exceptions import GenerationError
from marlowequill.app.providers.base import BaseProvider

logger = get_logger(__name__)

ERROR_PREFIX = "Gemini API Error"


class GeminiProvider(BaseProvider):
    """Google Gemini provider with shared HTTP client support."""

    name = "gemini"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
        max_output_tokens: int = 2048,
        temperature: float = 0.7,
        top_p: float = 0.95,
    ):
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.top_p = top_p
        super().__init__(base_url, api_key, http_client, timeout)

    def _build_headers(self) -> Dict[str, str]:
        return {
            "x-goog-api-key": self.api_key,
            "Content-Type": "application/json",
        }

    def _build_payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self.max_output_tokens,
                "temperature": self.temperature,
                "topP": self.top_p,
            },
        }

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        """Pull the human-readable message out of a Gemini error body."""
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
        return f"HTTP {resp.status_code}"

    @staticmethod
    def _extract_text(data: Any) -> str:
        """Concatenate the text parts of the first candidate.

        A response with no candidates at all (typically a blocked prompt) is an
        error, as is a body that does not follow the documented shape. A
        candidate without text is a successful, empty generation.
        """
        malformed = GenerationError(f"{ERROR_PREFIX}: malformed response body")
        if not isinstance(data, dict):
            raise malformed

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback")
            reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
            detail = f"prompt blocked ({reason})" if reason else "empty response from model"
            raise GenerationError(f"{ERROR_PREFIX}: {detail}")

        if not isinstance(candidates, list) or not isinstance(candidates[0], dict):
            raise malformed
        content = candidates[0].get("content") or {}
        if not isinstance(content, dict):
            raise malformed
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise malformed

        texts = []
        for part in parts:
            if not isinstance(part, dict):
                continue
            text = part.get("text") or ""
            if not isinstance(text, str):
                raise malformed
            texts.append(text)
        return "".join(texts)

    async def generate(self, prompt: str) -> str:
        """Send a single ``generateContent`` request.

        Raises:
            GenerationError: On HTTP errors, timeouts, network faults and
                responses without candidates
        """
        url = self._get_endpoint_url(f"/models/{self.model}:generateContent")

        try:
            async with self._client_context() as client:
                resp = await client.post(
                    url, headers=self.headers, json=self._build_payload(prompt)
                )
        except httpx.TimeoutException as e:
            logger.error(f"Gemini request timed out: {e!r}")
            raise GenerationError(f"{ERROR_PREFIX}: request timed out") from e
        except httpx.HTTPError as e:
            logger.error(f"Gemini request failed: {e!r}")
            raise GenerationError(f"{ERROR_PREFIX}: {e}") from e

        if resp.status_code >= 400:
            detail = self._error_detail(resp)
            logger.error(
                f"Gemini returned {resp.status_code}: {detail}",
                extra={"status_code": resp.status_code},
            )
            raise GenerationError(f"{ERROR_PREFIX}: {detail}")

        try:
            data = resp.json()
        except ValueError as e:
            raise GenerationError(f"{ERROR_PREFIX}: malformed response body") from e

        return self._extract_text(data)
