"""
Tests for the structured logging module.
"""

import json
import logging

from explainer_client.errors import ErrorContext, PollError
from explainer_client.logging import (
    JSONFormatter,
    LogContext,
    StructuredLogger,
    TextFormatter,
    TransitionLog,
    configure_logging,
    generate_trace_id,
    get_logger,
    redact_token,
)


def make_record(message: str, level: int = logging.INFO) -> logging.LogRecord:
    return logging.LogRecord("explainer_client", level, __file__, 1, message, None, None)


class TestLogContext:
    """Test LogContext dataclass."""

    def test_to_dict(self):
        ctx = LogContext(trace_id="t1", job_id="abc123", extra={"custom": "value"})

        d = ctx.to_dict()

        assert d == {"trace_id": "t1", "job_id": "abc123", "custom": "value"}

    def test_with_update(self):
        ctx = LogContext(trace_id="t1", transport="push")
        updated = ctx.with_update(job_id="abc123", extra={"new": "value"})

        assert updated.trace_id == "t1"
        assert updated.transport == "push"
        assert updated.job_id == "abc123"
        assert updated.extra == {"new": "value"}
        assert ctx.job_id is None


class TestTransitionLog:
    """Test state transition records."""

    def test_to_dict_drops_empty_fields(self):
        log = TransitionLog(job_id="abc123", previous="queued", current="processing", transport="push")

        d = log.to_dict()

        assert d["job_id"] == "abc123"
        assert d["current"] == "processing"
        assert "timestamp" in d
        assert "stage_label" not in d


class TestStructuredLogger:
    """Test StructuredLogger output."""

    def test_text_output_includes_context(self, caplog):
        logger = StructuredLogger("explainer_test_text")
        caplog.set_level(logging.DEBUG, logger="explainer_test_text")

        with logger.job_context("abc123", transport="poll") as trace_id:
            logger.info("Polling", attempt=2)

        assert trace_id.startswith("trace_")
        assert "Polling" in caplog.text
        assert "job_id=abc123" in caplog.text
        assert "transport=poll" in caplog.text
        assert "attempt=2" in caplog.text
        assert logger.context.job_id is None

    def test_json_output(self, caplog):
        logger = StructuredLogger("explainer_test_json", json_output=True)
        caplog.set_level(logging.INFO, logger="explainer_test_json")

        logger.set_context(operation="login")
        logger.info("Signed in", user_id="user-1")

        record = json.loads(caplog.records[-1].getMessage())
        assert record["message"] == "Signed in"
        assert record["operation"] == "login"
        assert record["user_id"] == "user-1"

    def test_log_transition(self, caplog):
        logger = StructuredLogger("explainer_test_transition")
        caplog.set_level(logging.INFO, logger="explainer_test_transition")

        logger.log_transition(TransitionLog(job_id="abc123", previous="queued", current="done"))

        assert "Job abc123: queued -> done" in caplog.text
        assert "event_type=transition" in caplog.text

    def test_log_token_redacts(self, caplog):
        logger = StructuredLogger("explainer_test_token")
        caplog.set_level(logging.DEBUG, logger="explainer_test_token")

        logger.log_token("Stored token", "eyJhbGciOiJIUzI1NiJ9.payload.signature")

        assert "eyJh...ture" in caplog.text
        assert "payload" not in caplog.text

    def test_log_token_unredacted(self, caplog):
        logger = StructuredLogger("explainer_test_token_raw", redact_tokens=False)
        caplog.set_level(logging.DEBUG, logger="explainer_test_token_raw")

        logger.log_token("Stored token", "raw-token-value")

        assert "raw-token-value" in caplog.text

    def test_log_error_includes_code_and_context(self, caplog):
        logger = StructuredLogger("explainer_test_error")
        caplog.set_level(logging.WARNING, logger="explainer_test_error")

        logger.log_error(PollError(context=ErrorContext(job_id="abc123")), "Poll failed", level=logging.WARNING)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert "Poll failed" in record.getMessage()
        assert "error_code=ERR_2003" in record.getMessage()
        assert "retryable=True" in record.getMessage()

    def test_child_logger_defers_to_package_logger(self):
        child = get_logger("explainer_client.test_child")

        assert child._logger.level == logging.NOTSET
        assert not child._logger.handlers
        assert get_logger("explainer_client.test_child") is child


class TestFormatters:
    """Test formatters."""

    def test_json_formatter_merges_payload(self):
        line = JSONFormatter().format(make_record(json.dumps({"message": "hi", "job_id": "abc123"})))

        data = json.loads(line)
        assert data["message"] == "hi"
        assert data["job_id"] == "abc123"
        assert data["level"] == "INFO"

    def test_json_formatter_plain_message(self):
        data = json.loads(JSONFormatter().format(make_record("plain text")))
        assert data["message"] == "plain text"

    def test_text_formatter_timestamp_toggle(self):
        with_ts = TextFormatter().format(make_record("hello"))
        without_ts = TextFormatter(include_timestamp=False).format(make_record("hello"))

        assert with_ts.endswith("hello")
        assert without_ts.startswith("\033[32mINFO")
        assert len(with_ts) > len(without_ts)


class TestConfigureLogging:
    """Test package-level configuration."""

    def test_writes_to_log_file_once(self, tmp_path):
        log_file = tmp_path / "logs" / "client.log"

        logger = configure_logging(level="DEBUG", name="explainer_test_file", log_file=log_file)
        configure_logging(level="DEBUG", name="explainer_test_file", log_file=log_file)
        logger.info("Written to file")
        for handler in logger._logger.handlers:
            handler.flush()

        file_handlers = [h for h in logger._logger.handlers if isinstance(h, logging.FileHandler)]
        assert len(file_handlers) == 1
        assert "Written to file" in log_file.read_text()

        for handler in file_handlers:
            logger._logger.removeHandler(handler)
            handler.close()

    def test_propagates_json_to_children(self):
        child = get_logger("explainer_test_parent.child")
        configure_logging(name="explainer_test_parent", json_output=True)

        assert child.json_output is True


class TestUtilities:
    """Test utility functions."""

    def test_generate_trace_id(self):
        first, second = generate_trace_id(), generate_trace_id()
        assert first.startswith("trace_")
        assert first != second

    def test_redact_token(self):
        assert redact_token(None) == "<not set>"
        assert redact_token("short") == "***"
        assert redact_token("abcdefghijklmnop") == "abcd...mnop"
