"""Unit tests for gateway/core/logging_filters.py and logging_config.py."""

import io
import json
import logging

import pytest

from gateway.core.logging_config import _build_handler
from gateway.core.logging_filters import (
    RequestIdFilter,
    SensitiveDataFilter,
    _is_sensitive_key,
    _redact_string,
    set_key_prefix,
)
from gateway.middleware.request_id import request_id_var

RAW_TOKEN = "oline_0123456789abcdef." + "f" * 64

# ---------------------------------------------------------------------------
# Tests: _redact_string (pattern-based redaction in message strings)
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestRedactString:
    def test_plain_text_unchanged(self):
        text = "Session 4f1c opened for key 0123456789abcdef"
        assert _redact_string(text) == text

    def test_redacts_raw_credential(self):
        result = _redact_string(f"Client sent {RAW_TOKEN} twice")
        assert "f" * 64 not in result
        assert "[REDACTED]" in result

    def test_redacts_authorization_bearer(self):
        result = _redact_string(f"Authorization: Bearer {RAW_TOKEN}")
        assert RAW_TOKEN not in result
        assert result.startswith("Authorization: ")

    def test_redacts_secret_equals_pattern(self):
        result = _redact_string("secret=mysecretkey123")
        assert "mysecretkey123" not in result

    def test_redacts_token_json_pattern(self):
        result = _redact_string('"token": "abc.def"')
        assert "abc.def" not in result

    def test_empty_string_unchanged(self):
        assert _redact_string("") == ""

    def test_custom_prefix(self):
        try:
            set_key_prefix("jrnl")
            result = _redact_string("jrnl_abc." + "a" * 40)
            assert "a" * 40 not in result
        finally:
            set_key_prefix("oline")


# ---------------------------------------------------------------------------
# Tests: _is_sensitive_key
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestIsSensitiveKey:
    @pytest.mark.parametrize("key", [
        "api_key", "API_KEY", "password", "secret", "token",
        "authorization", "credential", "key_hash", "bearer",
    ])
    def test_sensitive_keys_detected(self, key):
        assert _is_sensitive_key(key) is True

    @pytest.mark.parametrize("key", ["key_id", "user_id", "session_id", "status", "path"])
    def test_non_sensitive_keys_pass(self, key):
        assert _is_sensitive_key(key) is False


# ---------------------------------------------------------------------------
# Tests: filters on log records
# ---------------------------------------------------------------------------


def _make_record(msg, args=(), **extra):
    record = logging.LogRecord(
        name="test", level=logging.INFO, pathname="", lineno=0, msg=msg, args=args, exc_info=None
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestSensitiveDataFilter:
    def test_filter_always_returns_true(self):
        assert SensitiveDataFilter().filter(_make_record("hello")) is True

    def test_redacts_sensitive_extra_field(self):
        record = _make_record("key created", key_hash="abcd")
        SensitiveDataFilter().filter(record)
        assert record.key_hash == "[REDACTED]"

    def test_non_sensitive_extra_field_unchanged(self):
        record = _make_record("key created", key_id="0123")
        SensitiveDataFilter().filter(record)
        assert record.key_id == "0123"

    def test_tuple_args_redacted(self):
        record = _make_record("header was %s", args=(f"Bearer {RAW_TOKEN}",))
        SensitiveDataFilter().filter(record)
        assert RAW_TOKEN not in record.getMessage()

    def test_request_id_not_touched(self):
        record = _make_record("hello", request_id="token=abc")
        SensitiveDataFilter().filter(record)
        assert record.request_id == "token=abc"


@pytest.mark.unit
class TestRequestIdFilter:
    def test_uses_context_var(self):
        token = request_id_var.set("req-42")
        try:
            record = _make_record("hello")
            RequestIdFilter().filter(record)
            assert record.request_id == "req-42"
        finally:
            request_id_var.reset(token)

    def test_placeholder_outside_request(self):
        record = _make_record("hello")
        RequestIdFilter().filter(record)
        assert record.request_id == "-"


@pytest.mark.unit
class TestHandlers:
    def _emit(self, log_format, message):
        handler = _build_handler(log_format)
        stream = io.StringIO()
        handler.setStream(stream)
        handler.addFilter(RequestIdFilter())
        handler.addFilter(SensitiveDataFilter())
        logger = logging.getLogger(f"test.handlers.{log_format}")
        logger.propagate = False
        logger.setLevel(logging.INFO)
        logger.addHandler(handler)
        try:
            logger.info(message)
        finally:
            logger.removeHandler(handler)
        return stream.getvalue()

    def test_json_format(self):
        output = self._emit("json", f"using {RAW_TOKEN}")
        payload = json.loads(output)
        assert payload["level"] == "INFO"
        assert payload["request_id"] == "-"
        assert RAW_TOKEN not in payload["message"]

    def test_json_formatter_from_current_module(self):
        from pythonjsonlogger.json import JsonFormatter

        assert isinstance(_build_handler("json").formatter, JsonFormatter)

    def test_text_format(self):
        output = self._emit("text", "plain message")
        assert "[-] plain message" in output
