"""Tests for gateway log context helpers."""

import structlog

from vadapro.config import settings
from vadapro.middleware.logging import _add_service_context, bind_user, request_context


class TestRequestContext:
    def setup_method(self):
        structlog.contextvars.clear_contextvars()

    def teardown_method(self):
        structlog.contextvars.clear_contextvars()

    def test_bind_user_defaults_to_anonymous(self):
        bind_user(None)
        assert structlog.contextvars.get_contextvars()["user_id"] == "anonymous"

    def test_snapshot_keeps_only_caller_keys(self):
        structlog.contextvars.bind_contextvars(trace_id="t-1", path="/ai/analyze", method="POST")
        bind_user("alice")

        assert request_context() == {"trace_id": "t-1", "user_id": "alice", "path": "/ai/analyze"}

    def test_service_context_added_without_overriding(self):
        event = _add_service_context(None, "info", {"event": "x", "environment": "test"})
        assert event["service"] == settings.otel_service_name
        assert event["environment"] == "test"
