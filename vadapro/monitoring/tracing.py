"""OpenTelemetry tracing for inbound requests and outbound provider calls."""

import structlog

from vadapro.config import settings

logger = structlog.get_logger()


def setup_tracing(app) -> bool:
    """Export spans over OTLP when an endpoint is configured.

    Instruments the FastAPI app and httpx, which the Gemini SDK uses for its
    HTTP transport. Returns whether tracing was enabled.
    """
    if not settings.otel_exporter_endpoint:
        logger.info("tracing.skip", reason="OTEL_EXPORTER_ENDPOINT not set")
        return False

    try:
        from opentelemetry import trace
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
        from opentelemetry.sdk.resources import Resource
        from opentelemetry.sdk.trace import TracerProvider
        from opentelemetry.sdk.trace.export import BatchSpanProcessor
    except ImportError:
        logger.warning("tracing.import_error", message="opentelemetry packages not installed")
        return False

    try:
        resource = Resource.create({
            "service.name": settings.otel_service_name,
            "deployment.environment": settings.environment,
            "ai.model": settings.gemini_model,
        })
        provider = TracerProvider(resource=resource)
        provider.add_span_processor(
            BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otel_exporter_endpoint))
        )
        trace.set_tracer_provider(provider)
        FastAPIInstrumentor.instrument_app(app, excluded_urls="metrics,health/live")
    except Exception as e:
        logger.warning("tracing.setup_failed", error=str(e))
        return False

    try:
        from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

        HTTPXClientInstrumentor().instrument()
    except ImportError:
        logger.info("tracing.httpx_not_instrumented", reason="instrumentation package missing")

    logger.info("tracing.initialized", endpoint=settings.otel_exporter_endpoint)
    return True
