"""Tests for log redaction, processor setup and event context."""

import logging

import structlog

from taskrelay.utils.logging import (
    _filter_sensitive,
    _shared_processors,
    event_context,
    get_logger,
    setup_logging,
)


class TestFilterSensitive:
    def test_redacts_bearer_header(self):
        event = {"event": "request", "header": "Authorization: Bearer 0/abc123"}
        result = _filter_sensitive(None, "info", event)
        assert "0/abc123" not in result["header"]
        assert "REDACTED" in result["header"]

    def test_redacts_token_assignment(self):
        event = {"event": "x", "detail": "access_token=abc-def"}
        result = _filter_sensitive(None, "info", event)
        assert "abc-def" not in result["detail"]

    def test_redacts_hook_secret_field(self):
        event = {"event": "webhook_handshake", "hook_secret": "s3cr3t"}
        result = _filter_sensitive(None, "info", event)
        assert result["hook_secret"] == "***REDACTED***"

    def test_redacts_hook_secret_header_in_text(self):
        event = {"event": "x", "error": "bad header X-Hook-Secret: abc123"}
        result = _filter_sensitive(None, "info", event)
        assert "abc123" not in result["error"]

    def test_leaves_plain_values(self):
        event = {"event": "tag_created", "name": "Website", "count": 3}
        assert _filter_sensitive(None, "info", dict(event)) == event


class TestSetup:
    def test_context_merged_before_redaction(self):
        processors = _shared_processors()
        assert processors[0] is structlog.contextvars.merge_contextvars
        assert processors[-1] is _filter_sensitive

    def test_quiets_http_libraries(self):
        setup_logging("DEBUG")
        try:
            assert logging.getLogger("httpx").level == logging.WARNING
            assert logging.getLogger().level == logging.DEBUG
        finally:
            structlog.reset_defaults()
            logging.getLogger().handlers.clear()


class TestEventContext:
    def test_binds_and_unbinds(self):
        with event_context("added", "t1", "s1"):
            assert structlog.contextvars.get_contextvars() == {
                "event_action": "added",
                "event_resource": "t1",
                "event_parent": "s1",
            }
        assert "event_resource" not in structlog.contextvars.get_contextvars()


def test_get_logger_returns_bound_logger():
    log = get_logger("taskrelay.test")
    assert hasattr(log, "info")
