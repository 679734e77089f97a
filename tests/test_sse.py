"""
Tests for Server-Sent Events framing and the client-side parser
"""

import json

from luna.sse import StreamEvent, encode_event, iter_sse_payloads, parse_sse_line


class TestEncoding:
    def test_delta(self):
        assert encode_event(StreamEvent.delta("Olá")) == 'data: {"content": "Olá"}\n\n'

    def test_done(self):
        assert encode_event(StreamEvent.done()) == 'data: {"done": true}\n\n'

    def test_error(self):
        frame = encode_event(StreamEvent.error("try again"))
        assert json.loads(frame[len("data: "):]) == {"error": "try again"}

    def test_fragment_with_newlines_stays_one_frame(self):
        frame = encode_event(StreamEvent.delta("line one\nline two"))
        assert frame.count("\n") == 2
        assert frame.endswith("\n\n")


class TestParsing:
    def test_ignores_non_data_lines(self):
        assert parse_sse_line("") is None
        assert parse_sse_line(": keep-alive") is None
        assert parse_sse_line("event: ping") is None

    def test_ignores_non_json_data(self):
        assert parse_sse_line("data: [DONE]") is None
        assert parse_sse_line("data: not json") is None
        assert parse_sse_line('data: "just a string"') is None

    def test_parses_payload(self):
        assert parse_sse_line('data: {"content": "hi"}') == {"content": "hi"}

    def test_stops_after_done(self):
        lines = [
            'data: {"content": "a"}',
            "",
            ": comment",
            'data: {"content": "b"}',
            'data: {"done": true}',
            'data: {"content": "after"}',
        ]
        assert list(iter_sse_payloads(lines)) == [
            {"content": "a"}, {"content": "b"}, {"done": True},
        ]

    def test_stops_after_error(self):
        lines = ['data: {"content": "a"}', 'data: {"error": "boom"}', 'data: {"done": true}']
        assert list(iter_sse_payloads(lines))[-1] == {"error": "boom"}

    def test_round_trip_of_encoded_stream(self):
        events = [StreamEvent.delta("Dear "), StreamEvent.delta("Ana"), StreamEvent.done()]
        body = "".join(encode_event(e) for e in events)
        payloads = list(iter_sse_payloads(body.splitlines()))
        assert "".join(p.get("content", "") for p in payloads) == "Dear Ana"
