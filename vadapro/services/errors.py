"""Error taxonomy for the analysis API and its mapping to HTTP responses."""

from enum import Enum

import structlog

from vadapro.services.rate_limiter import LimitReason, RateLimitDecision

logger = structlog.get_logger()


class AIErrorType(str, Enum):
    RATE_LIMIT = "RATE_LIMIT"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    CONFIG_ERROR = "CONFIG_ERROR"
    SERVER_ERROR = "SERVER_ERROR"


# Messages shown to the end user for each error type
ERROR_MESSAGES: dict[AIErrorType, str] = {
    AIErrorType.RATE_LIMIT: "Rate limit exceeded. Please wait before trying again.",
    AIErrorType.QUOTA_EXCEEDED: "AI service quota exceeded. Please try again later.",
    AIErrorType.CONFIG_ERROR: "AI service configuration error. Please contact administrator.",
    AIErrorType.SERVER_ERROR: "Failed to analyze data. Please try again.",
}


class AnalysisError(Exception):
    """Base class for errors surfaced by the analysis endpoint."""

    status_code: int = 500
    error_type: AIErrorType | None = AIErrorType.SERVER_ERROR

    @property
    def user_message(self) -> str:
        return ERROR_MESSAGES[self.error_type]


class ValidationError(AnalysisError):
    """Raised when the request has no usable query."""

    status_code = 400
    error_type = None

    @property
    def user_message(self) -> str:
        return str(self)


class RateLimitExceeded(AnalysisError):
    """Raised for hard limit rejections (daily quota or global token budget)."""

    status_code = 429

    def __init__(self, decision: RateLimitDecision):
        super().__init__(decision.error or "Rate limit exceeded")
        self.decision = decision
        self.error_type = (
            AIErrorType.QUOTA_EXCEEDED
            if decision.reason == LimitReason.TOKENS
            else AIErrorType.RATE_LIMIT
        )

    @property
    def user_message(self) -> str:
        return str(self)


class QueueFull(AnalysisError):
    """Raised when the request queue is at capacity."""

    status_code = 429
    error_type = AIErrorType.RATE_LIMIT

    @property
    def user_message(self) -> str:
        return "The system is at capacity. Please try again shortly."


class ProviderError(AnalysisError):
    """Base class for failures reported by the AI provider client."""


class ProviderConfigError(ProviderError):
    """Provider rejected our credentials, or no API key is configured."""

    error_type = AIErrorType.CONFIG_ERROR


class ProviderQuotaError(ProviderError):
    """Provider reported its own quota as exhausted."""

    status_code = 429
    error_type = AIErrorType.QUOTA_EXCEEDED


class ProviderUnavailable(ProviderError):
    """Network failure, timeout, open circuit or provider-side 5xx."""


def to_error_response(error: Exception) -> tuple[int, dict]:
    """Convert an exception into ``(status_code, body)`` for the client."""
    if not isinstance(error, AnalysisError):
        logger.error("analysis.unexpected_error", error=str(error), error_type=type(error).__name__)
        return 500, {
            "success": False,
            "message": ERROR_MESSAGES[AIErrorType.SERVER_ERROR],
            "errorType": AIErrorType.SERVER_ERROR.value,
        }

    body: dict = {"success": False, "message": error.user_message}
    if error.error_type is not None:
        body["errorType"] = error.error_type.value
    return error.status_code, body
