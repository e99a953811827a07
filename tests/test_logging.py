"""Tests for hookrelay structured logging."""

import pytest
import structlog

from hookrelay.logging import (
    REDACTED,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    job_context,
    redact_sensitive,
    unbind_context,
)


class TestConfigureLogging:
    """Tests for logging configuration."""

    def test_configure_with_defaults(self):
        """Should configure with INFO level and JSON format by default."""
        configure_logging()
        get_logger("test").info("test message")

    def test_configure_with_text_format(self):
        """Should accept text format for development."""
        configure_logging(level="DEBUG", format="text")
        get_logger("test").debug("text format message", job_id="job_1")

    def test_unknown_level_falls_back(self):
        """An unknown level should not raise."""
        configure_logging(level="CHATTY")
        get_logger("test").info("still logs")


class TestRedaction:
    """Tests for redact_sensitive."""

    @pytest.mark.parametrize(
        "key",
        ["secret", "signature", "admin_api_token", "X-Relay-Signature", "qdrant_api_key"],
    )
    def test_sensitive_keys_masked(self, key):
        event = redact_sensitive(None, "info", {"event": "x", key: "value"})
        assert event[key] == REDACTED

    def test_nested_headers_masked(self):
        """Header dicts are scanned one level deep."""
        event = redact_sensitive(
            None,
            "info",
            {"event": "x", "headers": {"X-Relay-Signature": "abc", "X-Relay-Event": "e"}},
        )
        assert event["headers"]["X-Relay-Signature"] == REDACTED
        assert event["headers"]["X-Relay-Event"] == "e"

    def test_other_keys_untouched(self):
        event = redact_sensitive(None, "info", {"event": "x", "event_id": "evt_1"})
        assert event == {"event": "x", "event_id": "evt_1"}


class TestGetLogger:
    """Tests for logger creation."""

    def test_loggers_are_callable(self):
        """Should return loggers with the standard level methods."""
        logger = get_logger("test")
        for level in ("debug", "info", "warning", "error", "exception"):
            assert callable(getattr(logger, level, None))


class TestContextBinding:
    """Tests for context variable binding."""

    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_and_unbind(self):
        """Only the named keys should be removed."""
        bind_context(job_id="job_1", event_id="evt_1")
        unbind_context("job_id")

        context = structlog.contextvars.get_contextvars()
        assert "job_id" not in context
        assert context["event_id"] == "evt_1"

    def test_clear_context(self):
        bind_context(job_id="job_1")
        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_job_context_scoped(self):
        """Job keys exist inside the block and are gone after it."""
        bind_context(worker="w1")
        with job_context(job_id="job_1", attempt=3):
            context = structlog.contextvars.get_contextvars()
            assert context["job_id"] == "job_1"
            assert context["attempt"] == 3

        context = structlog.contextvars.get_contextvars()
        assert "job_id" not in context
        assert context["worker"] == "w1"

    def test_job_context_cleared_on_error(self):
        with pytest.raises(RuntimeError), job_context(job_id="job_1"):
            raise RuntimeError("boom")
        assert "job_id" not in structlog.contextvars.get_contextvars()
