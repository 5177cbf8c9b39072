"""Structlog configuration and request context for gateway logs.

Every log line carries the service name and environment. Request handlers add
``trace_id``, ``path`` and, on the AI routes, ``user_id``. Queued requests keep
the context they were enqueued with, so a drain pass logs each entry under its
own caller rather than whichever request happened to start the drain.
"""

import logging
import uuid
from contextvars import ContextVar

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from vadapro.config import settings

trace_id_var: ContextVar[str] = ContextVar("trace_id", default="")

# Context keys that identify a single caller's request.
REQUEST_CONTEXT_KEYS = ("trace_id", "user_id", "path")


def _add_service_context(logger, method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("service", settings.otel_service_name)
    event_dict.setdefault("environment", settings.environment)
    return event_dict


def configure_structlog() -> None:
    """JSON logs with contextvars, filtered at ``settings.log_level``."""
    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            _add_service_context,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def bind_user(user_id: str | None) -> None:
    """Attach the resolved caller to every log line for the rest of the request."""
    structlog.contextvars.bind_contextvars(user_id=user_id or "anonymous")


def request_context() -> dict:
    """Snapshot of the current caller's context, for work finished later."""
    current = structlog.contextvars.get_contextvars()
    return {key: current[key] for key in REQUEST_CONTEXT_KEYS if key in current}


class TraceIdMiddleware(BaseHTTPMiddleware):
    """Extract or generate X-Trace-ID and start a fresh log context per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        trace_id = request.headers.get("X-Trace-ID") or str(uuid.uuid4())
        trace_id_var.set(trace_id)
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            method=request.method,
            path=request.url.path,
        )

        response: Response = await call_next(request)
        response.headers["X-Trace-ID"] = trace_id
        return response
