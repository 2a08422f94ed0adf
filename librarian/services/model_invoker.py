"""
Model Invoker - Gemini text generation

Sends one prompt to Gemini and returns the raw response text, or raises a
classified failure:

- ModelAccessDeniedError: 401/403 from Gemini, or no API key configured
- ModelRateLimitedError: 429 / RESOURCE_EXHAUSTED (caller should back off)
- ModelInvocationError: anything else (5xx, timeouts, empty responses)

Architecture:
- API: Google Gen AI Python SDK (google-genai), async client (client.aio)
- Output: JSON text requested via response_mime_type; the SDK does not
  guarantee well-formed JSON, so the output is still extracted and validated
- Single call, no retries. Bounded by RECOMMENDATION_TIMEOUT_SECONDS.
"""

import asyncio
import logging
from typing import Optional

from google import genai
from google.genai import errors, types

from librarian.config import settings
from librarian.services.errors import (
    ModelAccessDeniedError,
    ModelInvocationError,
    ModelRateLimitedError,
    RecommendationError,
)

logger = logging.getLogger(__name__)

ACCESS_DENIED_CODES = {401, 403}
ACCESS_DENIED_STATUSES = {"PERMISSION_DENIED", "UNAUTHENTICATED"}
RATE_LIMITED_CODES = {429}
RATE_LIMITED_STATUSES = {"RESOURCE_EXHAUSTED"}


def classify_api_error(
    error: errors.APIError,
    retry_after: int = settings.RATE_LIMIT_RETRY_AFTER_SECONDS,
) -> RecommendationError:
    """Map a Gemini API error onto the pipeline's failure taxonomy."""
    code = getattr(error, "code", None)
    api_status = (getattr(error, "status", None) or "").upper()
    message = getattr(error, "message", None) or str(error)

    if code in ACCESS_DENIED_CODES or api_status in ACCESS_DENIED_STATUSES:
        return ModelAccessDeniedError(message)

    if code in RATE_LIMITED_CODES or api_status in RATE_LIMITED_STATUSES:
        return ModelRateLimitedError(message, retry_after=retry_after)

    return ModelInvocationError(f"Gemini API error {code}: {message}")


def _extract_response_text(response) -> Optional[str]:
    """
    Get the response text, preferring the candidate parts.

    The response.text property can sometimes be None even when parts have text.
    """
    if response.candidates:
        candidate = response.candidates[0]
        if candidate.content and candidate.content.parts:
            for part in candidate.content.parts:
                if getattr(part, "text", None):
                    return part.text

    return response.text


class GeminiModelInvoker:
    """
    Callable model backend used by the recommendation pipeline.

    The Gemini client is created lazily on first use, so constructing an
    invoker never touches the network.
    """

    def __init__(
        self,
        api_key: str,
        model: str = settings.RECOMMENDATION_MODEL,
        max_output_tokens: int = settings.RECOMMENDATION_MAX_OUTPUT_TOKENS,
        timeout_seconds: float = settings.RECOMMENDATION_TIMEOUT_SECONDS,
        retry_after: int = settings.RATE_LIMIT_RETRY_AFTER_SECONDS,
    ):
        self.api_key = api_key
        self.model = model
        self.max_output_tokens = max_output_tokens
        self.timeout_seconds = timeout_seconds
        self.retry_after = retry_after
        self._client: Optional[genai.Client] = None

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(
                api_key=self.api_key,
                # HttpOptions.timeout is in milliseconds
                http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
            )
            logger.info(f"Gemini client initialized for model {self.model}")
        return self._client

    def _build_config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=0.2,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json",
        )

    async def __call__(self, prompt: str) -> str:
        return await self.invoke(prompt)

    async def invoke(self, prompt: str) -> str:
        """
        Send the prompt to Gemini and return the raw response text.

        Raises:
            ModelAccessDeniedError: Missing API key or 401/403 from Gemini
            ModelRateLimitedError: Gemini is throttling the project
            ModelInvocationError: Any other failure, including timeouts
        """
        if not self.api_key:
            logger.error("GOOGLE_API_KEY not configured")
            raise ModelAccessDeniedError("GOOGLE_API_KEY is not configured")

        client = self._get_client()

        logger.info(f"Calling Gemini ({self.model})...")
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=self._build_config(),
                ),
                timeout=self.timeout_seconds,
            )
        except errors.APIError as e:
            classified = classify_api_error(e, retry_after=self.retry_after)
            logger.warning(f"Gemini call failed with {classified.kind.value}: {e}")
            raise classified from e
        except asyncio.TimeoutError as e:
            logger.error(f"Gemini call timed out after {self.timeout_seconds}s")
            raise ModelInvocationError(f"Model call timed out after {self.timeout_seconds}s") from e
        except Exception as e:
            logger.error(f"Error calling Gemini API: {e}")
            raise ModelInvocationError(str(e)) from e

        text = _extract_response_text(response)
        if not text:
            logger.error("Empty text in Gemini response")
            raise ModelInvocationError("Empty response from model")

        return text


_default_invoker: Optional[GeminiModelInvoker] = None


def get_model_invoker() -> GeminiModelInvoker:
    """Process-wide invoker built from settings (lazy initialization)."""
    global _default_invoker

    if _default_invoker is None:
        _default_invoker = GeminiModelInvoker(api_key=settings.GOOGLE_API_KEY)

    return _default_invoker
