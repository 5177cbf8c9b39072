"""
FastAPI application entry point.

Starts the server, the AI admission scheduler and defines core routes.
"""

import asyncio

import psutil
import structlog
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from vadapro.api.ai import router as ai_router
from vadapro.config import settings
from vadapro.middleware.logging import TraceIdMiddleware, configure_structlog
from vadapro.middleware.metrics import MetricsMiddleware
from vadapro.models.api import HealthResponse
from vadapro.monitoring.metrics import CPU_USAGE, MEMORY_USAGE
from vadapro.monitoring.sentry import setup_sentry
from vadapro.monitoring.tracing import setup_tracing
from vadapro.services.analysis import get_analysis_service

# Configure structlog (replaces logging.basicConfig)
configure_structlog()
logger = structlog.get_logger()

setup_sentry()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifecycle manager for startup/shutdown tasks."""
    # Startup
    service = get_analysis_service()
    logger.info(
        "app.startup",
        environment=settings.environment,
        model=service.model_name,
        provider_configured=service.client.is_configured,
        limits={
            "requests_per_minute": service.limits.requests_per_minute,
            "requests_per_day": service.limits.requests_per_day,
            "max_tokens_per_minute": service.limits.max_tokens_per_minute,
        },
    )
    if not service.client.is_configured:
        logger.warning("app.gemini_key_missing", message="GEMINI_API_KEY not set")

    service.start()
    app.state.resource_monitor = asyncio.create_task(_resource_monitor())

    yield

    # Shutdown
    logger.info("Shutting down VADAPRO AI gateway...")
    app.state.resource_monitor.cancel()
    await service.stop()


async def _resource_monitor() -> None:
    """Background task to track CPU and memory usage."""
    process = psutil.Process()
    while True:
        try:
            MEMORY_USAGE.set(process.memory_info().rss)
            CPU_USAGE.set(process.cpu_percent(interval=None))
        except psutil.Error as e:
            logger.warning("resource_monitor.failed", error=str(e))
        await asyncio.sleep(10)


# Create FastAPI app
app = FastAPI(
    title="VADAPRO AI Gateway",
    description="Rate-limited, queued AI analysis of survey datasets",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware (order matters: last added = first executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(MetricsMiddleware)
app.add_middleware(TraceIdMiddleware)

setup_tracing(app)

app.include_router(ai_router)


@app.get("/")
async def root():
    """Root endpoint - API info."""
    return {
        "name": "VADAPRO AI Gateway",
        "version": "0.1.0",
        "status": "running",
        "docs": "/docs",
    }


@app.get("/health")
async def health_check():
    """Health check: provider configuration and admission state."""
    service = get_analysis_service()
    configured = service.client.is_configured
    running = service.scheduler.is_running
    response = HealthResponse(
        status="healthy" if configured and running else "degraded",
        environment=settings.environment,
        model=service.model_name,
        provider_configured=configured,
        scheduler_running=running,
        queue_size=len(service.queue),
        tracked_users=len(service.limiter),
    )
    status_code = 200 if response.status == "healthy" else 503
    return JSONResponse(content=response.model_dump(), status_code=status_code)


@app.get("/health/live")
async def liveness_check():
    """Liveness probe. Returns 200 if process is alive."""
    return JSONResponse(content={"status": "alive"}, status_code=200)


@app.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(
        content=generate_latest().decode("utf-8"),
        media_type=CONTENT_TYPE_LATEST,
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "vadapro.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
    )
