"""Shared fixtures: a manual clock and a mocked Gemini client."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from vadapro.models.api import AnalyzeRequest
from vadapro.services.analysis import AnalysisService
from vadapro.services.clock import ManualClock
from vadapro.services.gemini import ProviderResponse
from vadapro.services.rate_limiter import RateLimits
from vadapro.services.usage import UsageState

START = datetime(2026, 3, 10, 12, 0, 30, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


@pytest.fixture
def usage(clock) -> UsageState:
    return UsageState.create(clock.now())


@pytest.fixture
def fake_client() -> MagicMock:
    """GeminiClient stand-in returning 100 input + 50 output tokens."""
    client = MagicMock()
    client.model = "gemini-2.5-flash"
    client.is_configured = True
    client.generate = AsyncMock(
        return_value=ProviderResponse(
            text="Average age is 34.",
            prompt_token_count=100,
            candidates_token_count=50,
        )
    )
    return client


@pytest.fixture
def make_service(clock, fake_client):
    """Build an AnalysisService on the manual clock with the given limits."""

    def _make(**limits) -> AnalysisService:
        return AnalysisService(RateLimits(**limits), fake_client, clock)

    return _make


@pytest.fixture
def make_request():
    def _make(query: str = "what is the average age", **fields) -> AnalyzeRequest:
        return AnalyzeRequest(query=query, **fields)

    return _make
