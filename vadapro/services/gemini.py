"""Gemini client wrapper.

Every failure leaving this module is one of the typed provider errors in
``vadapro.services.errors``; callers never inspect SDK exceptions or message
strings themselves.
"""

import asyncio
import time
from dataclasses import dataclass

import httpx
import structlog
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from vadapro.config import settings
from vadapro.monitoring.metrics import LLM_CALLS, LLM_DURATION
from vadapro.services.errors import (
    ProviderConfigError,
    ProviderError,
    ProviderQuotaError,
    ProviderUnavailable,
)
from vadapro.services.resilience import CircuitBreaker, CircuitBreakerOpen

logger = structlog.get_logger()

CSV_MIME_TYPE = "text/csv"


@dataclass(frozen=True)
class ProviderResponse:
    text: str
    prompt_token_count: int = 0
    candidates_token_count: int = 0


def classify_api_error(error: genai_errors.APIError) -> ProviderError:
    """Map an SDK error to our provider error types using its status code."""
    code = getattr(error, "code", None) or 0
    status = (getattr(error, "status", None) or "").upper()
    message = getattr(error, "message", None) or str(error)

    if code == 429 or status == "RESOURCE_EXHAUSTED":
        return ProviderQuotaError(message)
    if code in (401, 403) or status in ("UNAUTHENTICATED", "PERMISSION_DENIED"):
        return ProviderConfigError(message)
    if code == 400 and "api key" in message.lower().replace("_", " "):
        return ProviderConfigError(message)
    if code >= 500:
        return ProviderUnavailable(message)
    return ProviderError(message)


class GeminiClient:
    """Async Gemini client with timeout, circuit breaker and typed errors."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        api_key = settings.gemini_api_key if api_key is None else api_key
        self._model = model or settings.gemini_model
        self._timeout = timeout_seconds or settings.provider_timeout_seconds
        self._client = genai.Client(api_key=api_key) if api_key.strip() else None
        self._breaker = CircuitBreaker(name="gemini", trip_on=(ProviderUnavailable,))
        logger.info(
            "  [gemini] GeminiClient initialized",
            model=self._model,
            api_key_configured=self.is_configured,
        )

    @property
    def model(self) -> str:
        return self._model

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, file_uri: str | None = None) -> ProviderResponse:
        """Send ``prompt`` (optionally with an uploaded CSV attached) to the model."""
        if self._client is None:
            raise ProviderConfigError("GEMINI_API_KEY is not configured")

        contents: list = []
        if file_uri:
            contents.append(types.Part.from_uri(file_uri=file_uri, mime_type=CSV_MIME_TYPE))
        contents.append(prompt)

        LLM_CALLS.labels(model=self._model, mode="file" if file_uri else "inline").inc()
        start = time.perf_counter()
        try:
            return await self._breaker.call(self._generate, contents)
        except CircuitBreakerOpen as e:
            raise ProviderUnavailable(str(e)) from e
        finally:
            LLM_DURATION.labels(model=self._model).observe(time.perf_counter() - start)

    async def _generate(self, contents: list) -> ProviderResponse:
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(model=self._model, contents=contents),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("  [gemini] request timed out", timeout=self._timeout)
            raise ProviderUnavailable(f"Gemini request timed out after {self._timeout}s") from e
        except genai_errors.APIError as e:
            logger.warning("  [gemini] API error", code=e.code, status=e.status, error=str(e))
            raise classify_api_error(e) from e
        except httpx.HTTPError as e:
            logger.warning("  [gemini] transport error", error=str(e))
            raise ProviderUnavailable(str(e)) from e

        usage = response.usage_metadata
        return ProviderResponse(
            text=response.text or "",
            prompt_token_count=(usage.prompt_token_count or 0) if usage else 0,
            candidates_token_count=(usage.candidates_token_count or 0) if usage else 0,
        )


# Singleton
_gemini_client: GeminiClient | None = None


def get_gemini_client() -> GeminiClient:
    global _gemini_client
    if _gemini_client is None:
        _gemini_client = GeminiClient()
    return _gemini_client
