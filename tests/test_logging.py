"""Tests for converge.core.logging."""

import json
from pathlib import Path

import pytest

from converge.core.logging import (
    ConvergeLogger,
    OperationContext,
    _add_context,
    _sanitize_event_dict,
    configure_logging,
    get_current_context,
    get_logger,
    with_context,
)


class TestSanitization:
    """Sensitive keys are redacted before rendering."""

    def test_sensitive_keys_redacted(self):
        event = {
            "event": "token_exchange.sending",
            "api_key": "abc",
            "X-CSRF-TOKEN": "def",
            "Authorization": "Bearer xyz",
            "url": "https://example.com",
        }

        result = _sanitize_event_dict(None, "info", event)

        assert result["api_key"] == "[REDACTED]"
        assert result["X-CSRF-TOKEN"] == "[REDACTED]"
        assert result["Authorization"] == "[REDACTED]"
        assert result["url"] == "https://example.com"

    def test_nested_dict_redacted_one_level(self):
        result = _sanitize_event_dict(None, "info", {"headers": {"password": "p", "host": "h"}})
        assert result["headers"] == {"password": "[REDACTED]", "host": "h"}


class TestOperationContext:
    def test_generates_request_id(self):
        ctx = OperationContext(operation="attach_volume")
        assert ctx.request_id
        assert ctx.to_dict() == {"operation": "attach_volume", "request_id": ctx.request_id}

    def test_with_resource(self):
        ctx = OperationContext(operation="detach", request_id="req-1").with_resource("vol-1")
        assert ctx.to_dict() == {
            "operation": "detach",
            "request_id": "req-1",
            "resource_id": "vol-1",
        }

    def test_with_context_sets_and_resets(self):
        assert get_current_context() is None
        ctx = OperationContext(operation="op", request_id="req-2")
        with with_context(ctx):
            assert get_current_context() is ctx
        assert get_current_context() is None

    def test_add_context_does_not_override_explicit_keys(self):
        ctx = OperationContext(operation="op", request_id="req-3")
        with with_context(ctx):
            result = _add_context(None, "info", {"event": "e", "operation": "explicit"})
        assert result["operation"] == "explicit"
        assert result["request_id"] == "req-3"


class TestConvergeLogger:
    def test_bind_returns_new_logger(self):
        base = get_logger("retrier")
        bound = base.bind(operation="get_volume")
        assert isinstance(bound, ConvergeLogger)
        assert bound is not base
        assert bound._context == {"component": "retrier", "operation": "get_volume"}
        assert base._context == {"component": "retrier"}


class TestConfigureLogging:
    def test_both_without_file_rejected(self):
        with pytest.raises(ValueError):
            configure_logging(format="both")

    def test_json_file_output(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "converge.log"
        configure_logging(level="INFO", format="json", file_path=log_file)

        logger = get_logger("poller")
        with with_context(OperationContext(operation="wait", request_id="req-4")):
            logger.info("poller.converged", state="available", token="secret-value")
        logger.debug("poller.hidden")

        lines = [json.loads(line) for line in log_file.read_text().splitlines() if line]
        assert len(lines) == 1
        entry = lines[0]
        assert entry["event"] == "poller.converged"
        assert entry["component"] == "poller"
        assert entry["request_id"] == "req-4"
        assert entry["token"] == "[REDACTED]"
        assert entry["level"] == "info"
        assert "timestamp" in entry
