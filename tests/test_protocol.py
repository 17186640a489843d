"""Tests for the probe wire protocol."""

import json

import pytest

from boundary_trace.exceptions import ErrorCode, ProtocolError, RecordingError
from boundary_trace.models import AccessEvent, AccessKind
from boundary_trace.protocol import (
    Attached,
    Detached,
    decode,
    encode_attached,
    encode_detached,
    encode_event,
)


class TestEncode:
    def test_one_line_per_record(self, foo_constructor):
        for line in (encode_attached(1), encode_event(foo_constructor), encode_detached(None)):
            assert line.endswith("\n")
            assert line.count("\n") == 1

    def test_access_record_fields(self, foo_constructor):
        assert json.loads(encode_event(foo_constructor)) == {
            "type": "access",
            "symbol": "Pkg.Foo",
            "kind": "construct",
            "member": "<init>",
            "params": ["long"],
        }


class TestDecode:
    def test_round_trip(self, sample_events):
        for event in sample_events:
            assert decode(encode_event(event)) == event

    def test_handshake(self):
        assert decode(encode_attached(4242, "3.11.4")) == Attached(4242, "3.11.4")

    def test_detached_without_status(self):
        assert decode('{"type": "detached"}') == Detached(None)

    @pytest.mark.parametrize(
        "line",
        [
            "garbage",
            "[1, 2]",
            '{"type": "hello"}',
            '{"type": "access", "kind": "read"}',
            '{"type": "access", "symbol": "x", "kind": "peek"}',
            '{"type": "access", "symbol": "x", "kind": "read", "params": "int"}',
            '{"type": "attached", "pid": "abc"}',
            '{"type": "detached", "exit_code": "0"}',
        ],
    )
    def test_malformed(self, line):
        with pytest.raises(ProtocolError) as exc_info:
            decode(line)
        assert exc_info.value.code == ErrorCode.BT301

    def test_protocol_error_is_recording_error(self):
        with pytest.raises(RecordingError):
            decode("{")

    def test_long_line_snippet_truncated(self):
        line = '{"type": "' + "x" * 500 + '"}'
        with pytest.raises(ProtocolError) as exc_info:
            decode(line)
        assert len(exc_info.value.details["record"]) <= 120
        assert exc_info.value.line == line

    def test_decoded_event_is_access_event(self):
        record = decode('{"type": "access", "symbol": "libc", "kind": "read"}')
        assert record == AccessEvent("libc", AccessKind.READ)
