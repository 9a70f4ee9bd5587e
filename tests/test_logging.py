"""
Tests for structured logging and masking of citizen identifiers
"""
import json
import logging

from lams.core.logging_config import (ContextualFormatter, LoggingConfig,
                                      SensitiveDataFilter)


def _record(msg, *args, **extra):
    record = logging.LogRecord("lams.test", logging.INFO, __file__, 1, msg, args, None)
    record.__dict__.update(extra)
    return record


class TestSensitiveDataFilter:

    def test_masks_aadhaar_and_phone(self):
        record = _record("Objection from 9822012345 with aadhaar 1234 5678 9012")
        SensitiveDataFilter().filter(record)
        assert "9822012345" not in record.msg
        assert "1234 5678 9012" not in record.msg
        assert "XXXX-XXXX-****" in record.msg

    def test_masks_args(self):
        record = _record("owner %s", "+91 9822012345")
        SensitiveDataFilter().filter(record)
        assert "9822012345" not in record.getMessage()

    def test_leaves_reference_numbers(self):
        record = _record("Published SEC11-2024-001 for parcel 42")
        SensitiveDataFilter().filter(record)
        assert record.msg == "Published SEC11-2024-001 for parcel 42"

    def test_disabled(self):
        record = _record("token=abc123")
        SensitiveDataFilter(enabled=False).filter(record)
        assert record.msg == "token=abc123"


class TestContextualFormatter:

    def test_json_with_extra_and_context(self):
        LoggingConfig.set_context(request_id="req-1")
        try:
            line = ContextualFormatter().format(_record("Draw conducted", draw_id=7, seed="ab"))
        finally:
            LoggingConfig.clear_context()
        data = json.loads(line)
        assert data["message"] == "Draw conducted"
        assert data["request_id"] == "req-1"
        assert data["draw_id"] == 7
        assert data["seed"] == "ab"
