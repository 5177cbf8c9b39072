"""Pydantic request/response models for API endpoints.

Field names are snake_case in Python and camelCase on the wire, matching the
existing frontend client.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalysisContext(CamelModel):
    """Process metadata sent alongside a query."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    gemini_file_uri: str | None = None
    source_file_name: str | None = None
    entry_name: str | None = None
    process_id: str | None = None
    response_count: int | str | None = None
    program_name: str | None = None
    organization_name: str | None = None
    year: int | str | None = None


class AnalyzeRequest(CamelModel):
    # Optional so an empty query yields our 400 body instead of a 422
    query: str | None = None
    statistics: dict[str, Any] | None = None
    chart_config: dict[str, Any] | None = None
    csv_summary: dict[str, Any] | None = None
    csv_data: str | None = None
    context: AnalysisContext | None = None
    user_id: str | None = None


class AnalysisMetadata(CamelModel):
    input_tokens: int
    output_tokens: int
    total_tokens: int
    model: str
    timestamp: str


class AnalysisResult(CamelModel):
    success: bool = True
    response: str
    metadata: AnalysisMetadata


class ErrorResponse(CamelModel):
    success: bool = False
    message: str
    error_type: str | None = None


class UsageLimits(CamelModel):
    requests_per_minute: int
    requests_per_day: int
    max_tokens_per_minute: int


class UsageStats(CamelModel):
    total_requests_today: int
    total_tokens_this_minute: int
    remaining_tokens: int
    usage_percentage: str  # two decimals, e.g. "12.50"
    limits: UsageLimits
    minute_reset_time: str
    daily_reset_time: str
    queue_size: int = 0


class UsageResponse(CamelModel):
    success: bool = True
    stats: UsageStats


class ModelResponse(CamelModel):
    success: bool = True
    model: str


class HealthResponse(BaseModel):
    status: str  # "healthy" | "degraded"
    environment: str
    model: str
    provider_configured: bool
    scheduler_running: bool
    queue_size: int = 0
    tracked_users: int = 0
