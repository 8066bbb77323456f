"""Tests for the text/event-stream line decoder."""
import asyncio

from conductor_client.api.sse import SseDecoder, iter_sse


def _feed(lines):
    decoder = SseDecoder()
    return [event for event in (decoder.feed(line) for line in lines) if event is not None]


class TestSseDecoder:
    def test_single_data_event(self):
        events = _feed(['data: {"a": 1}', ""])
        assert len(events) == 1
        assert events[0].event == "message"
        assert events[0].data == '{"a": 1}'

    def test_multiline_data_is_joined_with_newline(self):
        events = _feed(["data: first", "data: second", ""])
        assert events[0].data == "first\nsecond"

    def test_named_event_and_id(self):
        events = _feed(["id: 42", "event: completed", "data: {}", ""])
        assert events[0].event == "completed"
        assert events[0].event_id == "42"

    def test_named_event_without_data_is_dispatched(self):
        events = _feed(["event: completed", ""])
        assert [e.event for e in events] == ["completed"]
        assert events[0].data == ""

    def test_comments_and_blank_lines_are_ignored(self):
        assert _feed([": ping", "", "", "retry: 1000", ""]) == []

    def test_only_one_leading_space_is_stripped(self):
        events = _feed(["data:  indented", ""])
        assert events[0].data == " indented"

    def test_field_without_colon_and_crlf(self):
        events = _feed(["data\r", "\r"])
        assert events[0].data == ""

    def test_incomplete_trailing_event_is_not_dispatched(self):
        assert _feed(["data: partial"]) == []


def test_iter_sse_over_async_lines():
    async def lines():
        for line in ["data: 1", "", "data: 2", ""]:
            yield line

    async def collect():
        return [event.data async for event in iter_sse(lines())]

    assert asyncio.run(collect()) == ["1", "2"]
