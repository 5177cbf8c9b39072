"""Tests for the Gemini client wrapper and provider error classification."""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from google.genai import errors as genai_errors

from vadapro.services.errors import (
    AIErrorType,
    ProviderConfigError,
    ProviderError,
    ProviderQuotaError,
    ProviderUnavailable,
)
from vadapro.services.gemini import GeminiClient, classify_api_error


def _api_error(code: int, status: str, message: str) -> genai_errors.APIError:
    cls = genai_errors.ServerError if code >= 500 else genai_errors.ClientError
    return cls(code, {"error": {"code": code, "status": status, "message": message}})


def _client_with_sdk(**kwargs) -> tuple[GeminiClient, MagicMock]:
    client = GeminiClient(api_key="test-key", model="gemini-2.5-flash", **kwargs)
    sdk = MagicMock()
    sdk.aio.models.generate_content = AsyncMock(
        return_value=SimpleNamespace(
            text="There are 120 responses.",
            usage_metadata=SimpleNamespace(prompt_token_count=12, candidates_token_count=None),
        )
    )
    client._client = sdk
    return client, sdk


class TestClassifyApiError:
    def test_quota(self):
        error = classify_api_error(_api_error(429, "RESOURCE_EXHAUSTED", "Quota exceeded"))
        assert isinstance(error, ProviderQuotaError)
        assert error.error_type == AIErrorType.QUOTA_EXCEEDED
        assert error.status_code == 429

    def test_invalid_api_key(self):
        error = classify_api_error(
            _api_error(400, "INVALID_ARGUMENT", "API key not valid. Please pass a valid API key.")
        )
        assert isinstance(error, ProviderConfigError)
        assert error.error_type == AIErrorType.CONFIG_ERROR

    def test_permission_denied(self):
        error = classify_api_error(_api_error(403, "PERMISSION_DENIED", "denied"))
        assert isinstance(error, ProviderConfigError)

    def test_server_error(self):
        error = classify_api_error(_api_error(503, "UNAVAILABLE", "overloaded"))
        assert isinstance(error, ProviderUnavailable)

    def test_other_client_error(self):
        error = classify_api_error(_api_error(400, "INVALID_ARGUMENT", "bad mime type"))
        assert type(error) is ProviderError
        assert error.error_type == AIErrorType.SERVER_ERROR


class TestGenerate:
    @pytest.mark.asyncio
    async def test_missing_key_is_config_error(self):
        client = GeminiClient(api_key="")
        assert client.is_configured is False
        with pytest.raises(ProviderConfigError):
            await client.generate("hello")

    @pytest.mark.asyncio
    async def test_returns_text_and_usage(self):
        client, sdk = _client_with_sdk()
        response = await client.generate("how many responses")

        assert response.text == "There are 120 responses."
        assert response.prompt_token_count == 12
        assert response.candidates_token_count == 0
        kwargs = sdk.aio.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"] == ["how many responses"]

    @pytest.mark.asyncio
    async def test_file_reference_attached_before_prompt(self):
        client, sdk = _client_with_sdk()
        await client.generate("summarize", file_uri="https://files.example/abc")

        contents = sdk.aio.models.generate_content.call_args.kwargs["contents"]
        assert len(contents) == 2
        assert contents[0].file_data.file_uri == "https://files.example/abc"
        assert contents[0].file_data.mime_type == "text/csv"
        assert contents[1] == "summarize"

    @pytest.mark.asyncio
    async def test_missing_usage_metadata(self):
        client, sdk = _client_with_sdk()
        sdk.aio.models.generate_content.return_value = SimpleNamespace(text=None, usage_metadata=None)

        response = await client.generate("hi")
        assert response.text == ""
        assert response.prompt_token_count == 0

    @pytest.mark.asyncio
    async def test_api_error_is_classified(self):
        client, sdk = _client_with_sdk()
        sdk.aio.models.generate_content.side_effect = _api_error(429, "RESOURCE_EXHAUSTED", "quota")

        with pytest.raises(ProviderQuotaError):
            await client.generate("hi")

    @pytest.mark.asyncio
    async def test_transport_error_is_unavailable(self):
        client, sdk = _client_with_sdk()
        sdk.aio.models.generate_content.side_effect = httpx.ConnectError("refused")

        with pytest.raises(ProviderUnavailable):
            await client.generate("hi")

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self):
        client, sdk = _client_with_sdk(timeout_seconds=0.01)

        async def hang(**kwargs):
            await asyncio.sleep(1)

        sdk.aio.models.generate_content.side_effect = hang

        with pytest.raises(ProviderUnavailable, match="timed out"):
            await client.generate("hi")

    @pytest.mark.asyncio
    async def test_repeated_outages_open_circuit(self):
        client, sdk = _client_with_sdk()
        sdk.aio.models.generate_content.side_effect = httpx.ConnectError("refused")

        for _ in range(5):
            with pytest.raises(ProviderUnavailable):
                await client.generate("hi")

        with pytest.raises(ProviderUnavailable, match="open"):
            await client.generate("hi")
        assert sdk.aio.models.generate_content.await_count == 5

    @pytest.mark.asyncio
    async def test_quota_errors_do_not_open_circuit(self):
        client, sdk = _client_with_sdk()
        sdk.aio.models.generate_content.side_effect = _api_error(429, "RESOURCE_EXHAUSTED", "quota")

        for _ in range(6):
            with pytest.raises(ProviderQuotaError):
                await client.generate("hi")
        assert sdk.aio.models.generate_content.await_count == 6

    @pytest.mark.asyncio
    async def test_quota_error_after_outage_does_not_wedge_circuit(self):
        client, sdk = _client_with_sdk()
        client._breaker.recovery_timeout = 0
        ok = sdk.aio.models.generate_content.return_value
        sdk.aio.models.generate_content.side_effect = [
            *[httpx.ConnectError("refused")] * 5,
            _api_error(429, "RESOURCE_EXHAUSTED", "quota"),
            ok,
            ok,
        ]

        for _ in range(5):
            with pytest.raises(ProviderUnavailable):
                await client.generate("hi")
        with pytest.raises(ProviderQuotaError):
            await client.generate("hi")

        for _ in range(2):
            response = await client.generate("hi")
            assert response.text == "There are 120 responses."
