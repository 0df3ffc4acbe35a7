"""Tests for response formatting."""

import pytest

from reqpad.models import ResponseRecord
from reqpad.output import format_body, format_bytes, format_output
from tests.conftest import make_response_record


class TestFormatBytes:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0B"), (1023, "1023B"), (1024, "1KB"), (5000, "4KB"), (3 * 1024 * 1024, "3MB")],
    )
    def test_units(self, size, expected):
        assert format_bytes(size) == expected


class TestFormatBody:
    def test_pretty_json_object(self):
        assert format_body('{"a":1}') == '{\n  "a": 1\n}'

    def test_pretty_json_array(self):
        assert format_body("[1,2]") == "[\n  1,\n  2\n]"

    def test_invalid_json_returned_as_is(self):
        assert format_body("{oops") == "{oops"

    def test_plain_text(self):
        assert format_body("hello") == "hello"

    def test_none(self):
        assert format_body(None) == ""


class TestFormatOutput:
    def test_default_sections(self):
        out = format_output(make_response_record(body='{"status":"ok"}'))
        assert "STATUS: 200 OK" in out
        assert "TIME: 42ms" in out
        assert "SIZE: 15B" in out
        assert "BODY:" in out
        assert '"status": "ok"' in out
        assert "HEADERS:" not in out

    def test_verbose_headers(self):
        record = make_response_record(body="x", headers={"X-Req": "1"})
        out = format_output(record, verbose=True)
        assert "HEADERS:" in out
        assert "  X-Req: 1" in out

    def test_raw_body_only(self):
        out = format_output(make_response_record(body='{"a":1}'), raw=True)
        assert out == '{\n  "a": 1\n}'

    def test_no_body_section_when_empty(self):
        assert "BODY:" not in format_output(make_response_record(status_code=204, status_text="No Content"))

    def test_error_record(self):
        record = ResponseRecord(
            status_code=0,
            status_text="Network Error",
            is_error=True,
            error_message="Connection error: refused",
        )
        assert format_output(record) == "ERROR: Connection error: refused"
