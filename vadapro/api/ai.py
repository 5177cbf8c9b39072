"""AI analysis endpoints consumed by the VADAPRO frontend."""

import time

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from vadapro.models.api import (
    AnalysisResult,
    AnalyzeRequest,
    ErrorResponse,
    ModelResponse,
    UsageResponse,
)
from vadapro.middleware.logging import bind_user
from vadapro.monitoring.metrics import ERRORS
from vadapro.services.analysis import get_analysis_service
from vadapro.services.errors import to_error_response

logger = structlog.get_logger()

router = APIRouter(prefix="/ai", tags=["ai"])

_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


@router.post("/analyze", response_model=AnalysisResult, responses=_ERROR_RESPONSES)
async def analyze(body: AnalyzeRequest, request: Request):
    """Analyze survey data with the AI model.

    Requests over the per-minute limit are held in the queue and answered once
    capacity frees up; the HTTP call stays open until then.
    """
    service = get_analysis_service()
    user_id = body.user_id or (request.client.host if request.client else None)
    bind_user(user_id)
    start = time.perf_counter()

    logger.info(
        "========== ANALYZE REQUEST ==========",
        query_preview=(body.query or "")[:120],
        has_statistics=bool(body.statistics),
        has_csv_summary=bool(body.csv_summary),
        csv_chars=len(body.csv_data) if body.csv_data else 0,
        has_file_uri=bool(body.context and body.context.gemini_file_uri),
    )

    try:
        result = await service.analyze(body, user_id)
    except Exception as e:
        status_code, content = to_error_response(e)
        ERRORS.labels(error_type=type(e).__name__, stage="endpoint").inc()
        logger.warning(
            "  [endpoint] analysis failed",
            status=status_code,
            error_type=content.get("errorType"),
            error=str(e),
        )
        return JSONResponse(status_code=status_code, content=content)

    logger.info(
        "  [endpoint] analysis complete",
        total_tokens=result.metadata.total_tokens,
        duration=f"{time.perf_counter() - start:.2f}s",
    )
    return result


@router.get("/usage", response_model=UsageResponse)
async def usage():
    """Current AI usage counters and limits."""
    service = get_analysis_service()
    return UsageResponse(stats=service.usage_stats())


@router.get("/model", response_model=ModelResponse)
async def model():
    return ModelResponse(model=get_analysis_service().model_name)
