"""
Unit tests for core.logger module.

Tests:
- format_kv_pairs() quoting, escaping and truncation
- StructuredFormatter layout
- Logger key=value and JSON output modes
"""

import json
import logging

import pytest

from chronicle.core.logger import Logger, StructuredFormatter, format_kv_pairs


class TestFormatKvPairs:
    def test_empty(self):
        assert format_kv_pairs({}) == ""

    def test_simple(self):
        assert format_kv_pairs({"members": 12, "hops": 2}) == " members=12 hops=2"

    def test_quotes_whitespace(self):
        assert format_kv_pairs({"error": "timed out"}) == ' error="timed out"'

    def test_escapes_quotes(self):
        assert format_kv_pairs({"msg": 'say "hi"'}) == ' msg="say \\"hi\\""'

    def test_empty_value_quoted(self):
        assert format_kv_pairs({"hint": ""}) == ' hint=""'

    def test_truncation(self):
        result = format_kv_pairs({"v": "x" * 20}, max_value_length=5)
        assert result == ' v="xxxxx...<truncated 15 chars>"'

    def test_prefix(self):
        assert format_kv_pairs({"a": 1}, prefix="") == "a=1"


class TestStructuredFormatter:
    def test_layout(self):
        record = logging.LogRecord("policy", logging.INFO, __file__, 1, "event_accepted", (), None)
        record.structured_kv = {"id": "abc"}
        assert StructuredFormatter().format(record) == "info policy event_accepted id=abc"

    def test_plain_record(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "msg %s", ("v",), None)
        assert StructuredFormatter().format(record) == "warning x msg v"


class TestLogger:
    def test_name(self):
        assert Logger("trust").name == "trust"

    def test_kv_fields_attached(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger="trust"):
            Logger("trust").info("trust_network_built", members=3)
        record = caplog.records[-1]
        assert record.getMessage() == "trust_network_built"
        assert record.structured_kv == {"members": 3}

    def test_long_strings_truncated(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.INFO, logger="t"):
            Logger("t", max_value_length=4).info("m", error="abcdefgh")
        assert caplog.records[-1].structured_kv["error"].startswith("abcd...")

    def test_json_output(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.WARNING, logger="j"):
            Logger("j", json_output=True).warning("backup_failed", relay="wss://x")
        payload = json.loads(caplog.records[-1].getMessage())
        assert payload["level"] == "warning"
        assert payload["service"] == "j"
        assert payload["message"] == "backup_failed"
        assert payload["relay"] == "wss://x"

    def test_disabled_level_skipped(self, caplog: pytest.LogCaptureFixture):
        with caplog.at_level(logging.ERROR, logger="quiet"):
            Logger("quiet").info("ignored")
        assert not [r for r in caplog.records if r.name == "quiet"]
