"""Prometheus metrics definitions."""

from prometheus_client import Counter, Gauge, Histogram

# Request metrics
REQUEST_COUNT = Counter(
    "vadapro_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)

REQUEST_DURATION = Histogram(
    "vadapro_request_duration_seconds",
    "HTTP request duration in seconds",
    ["endpoint"],
    buckets=[0.1, 0.5, 1, 2, 3, 5, 10, 20, 30, 60],
)

# LLM metrics
LLM_CALLS = Counter(
    "vadapro_llm_calls_total",
    "Total LLM API calls",
    ["model", "mode"],  # mode: file, inline
)

LLM_TOKENS = Counter(
    "vadapro_llm_tokens_total",
    "Total LLM tokens used",
    ["model", "token_type"],  # token_type: input, output
)

LLM_DURATION = Histogram(
    "vadapro_llm_duration_seconds",
    "LLM call duration in seconds",
    ["model"],
    buckets=[0.5, 1, 2, 3, 5, 8, 10, 20, 30],
)

TOKENS_THIS_MINUTE = Gauge(
    "vadapro_tokens_this_minute",
    "Tokens consumed in the current minute window",
)

# Error metrics
ERRORS = Counter(
    "vadapro_errors_total",
    "Total errors",
    ["error_type", "stage"],
)

# Admission metrics
RATE_LIMIT_DECISIONS = Counter(
    "vadapro_rate_limit_decisions_total",
    "Rate limiter decisions by outcome",
    ["outcome"],  # allowed, minute, daily, tokens
)

TRACKED_USERS = Gauge(
    "vadapro_rate_limit_tracked_users",
    "Number of user records held by the rate limiter",
)

# Queue metrics
QUEUE_SIZE = Gauge(
    "vadapro_queue_size",
    "Current queue size",
)

REQUESTS_QUEUED = Counter(
    "vadapro_requests_queued_total",
    "Total requests queued",
)

REQUESTS_REJECTED = Counter(
    "vadapro_requests_rejected_total",
    "Total requests rejected",
    ["reason"],  # daily, tokens, queue_full
)

QUEUE_WAIT = Histogram(
    "vadapro_queue_wait_seconds",
    "Time a queued request waited before being resolved",
    buckets=[1, 5, 10, 20, 30, 60, 120, 300],
)

# System metrics
MEMORY_USAGE = Gauge(
    "vadapro_memory_bytes",
    "Process memory usage in bytes",
)

CPU_USAGE = Gauge(
    "vadapro_cpu_percent",
    "Process CPU usage percentage",
)
