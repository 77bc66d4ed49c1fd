"""Unit tests for request correlation and structured log output."""

import json
import logging

from readiness_engine.logging_config import JsonFormatter, RequestIdFilter, get_request_id, request_scope


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord("readiness_engine.test", logging.INFO, __file__, 1, "Attempt recorded", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestRequestScope:
    """Request id bound for the duration of a call."""

    def test_generates_and_resets(self):
        assert get_request_id() is None
        with request_scope() as rid:
            assert get_request_id() == rid
        assert get_request_id() is None

    def test_reuses_given_id(self):
        with request_scope("job-42") as rid:
            assert rid == "job-42"
            record = _record()
            RequestIdFilter().filter(record)
            assert record.request_id == "job-42"


class TestJsonFormatter:
    """Production log lines."""

    def test_includes_extra_fields(self):
        record = _record(request_id="abc", step_id="s-1", success=True)

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "Attempt recorded"
        assert payload["level"] == "INFO"
        assert payload["request_id"] == "abc"
        assert payload["step_id"] == "s-1"
        assert payload["success"] is True

    def test_unserializable_extra_is_stringified(self):
        record = _record(request_id="-", target=object())

        payload = json.loads(JsonFormatter().format(record))

        assert "request_id" not in payload
        assert payload["target"].startswith("<object object")
