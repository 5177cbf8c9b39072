"""Runs a single admitted analysis request against the AI provider."""

from datetime import datetime, timezone

import structlog

from vadapro.models.api import AnalysisMetadata, AnalysisResult, AnalyzeRequest
from vadapro.monitoring.metrics import ERRORS, LLM_TOKENS, TOKENS_THIS_MINUTE
from vadapro.services.clock import Clock
from vadapro.services.gemini import GeminiClient
from vadapro.services.prompts import (
    build_context_prompt,
    build_lightweight_prompt,
    sanitize_data,
)
from vadapro.services.usage import UsageState

logger = structlog.get_logger()


def utc_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class RequestExecutor:
    """Builds the prompt, calls the provider and accounts token usage.

    Provider errors propagate unchanged; translating them for the client is
    the job of whoever awaits ``execute``.
    """

    def __init__(
        self,
        client: GeminiClient,
        usage: UsageState,
        clock: Clock,
        max_tokens_per_minute: int,
    ) -> None:
        self.client = client
        self.usage = usage
        self._clock = clock
        self.max_tokens_per_minute = max_tokens_per_minute

    async def execute(self, request: AnalyzeRequest) -> AnalysisResult:
        query = request.query or ""
        statistics = sanitize_data(request.statistics)
        csv_summary = sanitize_data(request.csv_summary)
        file_uri = request.context.gemini_file_uri if request.context else None

        if file_uri:
            logger.info("  [executor] using uploaded file", file_uri=file_uri)
            prompt = build_lightweight_prompt(query, statistics, request.context)
        else:
            logger.info(
                "  [executor] using inline context",
                csv_chars=len(request.csv_data) if request.csv_data else 0,
                has_summary=bool(csv_summary),
            )
            prompt = build_context_prompt(
                query, statistics, request.chart_config, csv_summary, request.context
            )

        try:
            response = await self.client.generate(prompt, file_uri=file_uri)
        except Exception as e:
            ERRORS.labels(error_type=type(e).__name__, stage="provider").inc()
            raise

        input_tokens = response.prompt_token_count
        output_tokens = response.candidates_token_count
        self._log_usage(input_tokens, output_tokens)

        return AnalysisResult(
            response=response.text,
            metadata=AnalysisMetadata(
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                total_tokens=input_tokens + output_tokens,
                model=self.client.model,
                timestamp=utc_timestamp(self._clock.now()),
            ),
        )

    def _log_usage(self, input_tokens: int, output_tokens: int) -> None:
        total = input_tokens + output_tokens
        self.usage.record_tokens(total)

        LLM_TOKENS.labels(model=self.client.model, token_type="input").inc(input_tokens)
        LLM_TOKENS.labels(model=self.client.model, token_type="output").inc(output_tokens)
        TOKENS_THIS_MINUTE.set(self.usage.total_tokens_this_minute)

        logger.info(
            "ai.usage",
            request_type="Data Analysis",
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total,
            requests_today=self.usage.total_requests_today,
            tokens_this_minute=self.usage.total_tokens_this_minute,
            token_budget=self.max_tokens_per_minute,
            remaining_tokens=self.usage.remaining_tokens(self.max_tokens_per_minute),
            usage_percentage=f"{self.usage.usage_percentage(self.max_tokens_per_minute):.2f}",
        )
