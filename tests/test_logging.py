"""Tests for logging setup, JSON output and redaction"""
import json
import logging
from logging.handlers import RotatingFileHandler

from opmap_client.core.config import LogConfig
from opmap_client.core.logging import (
    JSONFormatter,
    SensitiveDataFilter,
    redact_message,
    setup_logging,
    with_log_context,
)


def make_record(msg, **extra):
    record = logging.makeLogRecord({"name": "opmap_client.test", "levelno": logging.INFO, "levelname": "INFO", "msg": msg})
    record.__dict__.update(extra)
    return record


class TestRedaction:
    """Test sensitive data masking"""

    def test_bearer_token(self):
        assert redact_message("sent Bearer abc.def-123") == "sent Bearer [REDACTED]"

    def test_authorization_header(self):
        redacted = redact_message("{'Authorization': 'Bearer abc123'}")
        assert "abc123" not in redacted

    def test_key_value(self):
        assert "s3cret" not in redact_message("token=s3cret other=1")
        assert "other=1" in redact_message("token=s3cret other=1")

    def test_plain_text_untouched(self):
        assert redact_message("GET Change.Get -> Success (12ms)") == "GET Change.Get -> Success (12ms)"

    def test_filter_masks_sensitive_extra_fields(self):
        record = make_record("calling", token="abc", uri="https://example.test/x", headers={"Authorization": "Bearer x"})
        SensitiveDataFilter().filter(record)
        assert record.token == "[REDACTED]"
        assert record.uri == "https://example.test/x"
        assert record.headers == {"Authorization": "[REDACTED]"}


class TestJSONFormatter:
    """Test structured output"""

    def test_includes_extra_fields(self):
        record = make_record(
            "GET Change.Get -> Success", action="Change.Get", uri="https://example.test/a", method="GET", attempt=1
        )
        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["message"] == "GET Change.Get -> Success"
        assert entry["action"] == "Change.Get"
        assert entry["uri"] == "https://example.test/a"
        assert entry["method"] == "GET"
        assert entry["attempt"] == 1
        assert "timestamp" in entry

    def test_redacts_without_filter(self):
        entry = json.loads(JSONFormatter().format(make_record("Bearer abc", secret="x")))
        assert entry["message"] == "Bearer [REDACTED]"
        assert entry["secret"] == "[REDACTED]"


class TestSetupLogging:
    """Test logger configuration"""

    def test_returns_package_logger(self):
        logger = setup_logging("DEBUG")
        assert logger.name == "opmap_client"
        assert logging.getLogger().level == logging.DEBUG

    def test_json_format(self):
        setup_logging("INFO", log_format="json")
        assert any(isinstance(h.formatter, JSONFormatter) for h in logging.getLogger().handlers)

    def test_env_level(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging()
        assert logging.getLogger().level == logging.ERROR

    def test_invalid_level_falls_back_to_info(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.INFO

    def test_log_file(self, tmp_path):
        log_file = tmp_path / "logs" / "opmap.log"
        logger = setup_logging("INFO", log_file=log_file)
        logger.info("hello")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello" in log_file.read_text()

    def test_log_file_rotation_uses_log_config(self, tmp_path):
        setup_logging("INFO", log_file=tmp_path / "opmap.log")
        rotating = [h for h in logging.getLogger().handlers if isinstance(h, RotatingFileHandler)]
        assert len(rotating) == 1
        assert rotating[0].maxBytes == LogConfig().file_max_bytes
        assert rotating[0].backupCount == LogConfig().file_backup_count


class TestLogContext:
    """Test contextual adapters"""

    def test_context_merged(self):
        adapter = with_log_context(logging.getLogger("opmap_client.test"), action="Change.Get")
        nested = with_log_context(adapter, attempt=2)
        assert nested.extra == {"action": "Change.Get", "attempt": 2}
