"""Incremental decoder for ``text/event-stream`` bodies.

Lines are fed one at a time (without their terminator); a blank line
dispatches the buffered event. Comment lines (leading ``:``) and unknown
fields are ignored. An event with neither a ``data`` line nor an ``event``
name is never dispatched; a bare named event is, with empty data.
"""
from __future__ import annotations

from typing import AsyncIterator, List, Optional

from conductor_client.domain.contracts import SseEvent

DEFAULT_EVENT = "message"


class SseDecoder:
    def __init__(self) -> None:
        self._event = ""
        self._data: List[str] = []
        self._last_id = ""

    def feed(self, line: str) -> Optional[SseEvent]:
        line = line.rstrip("\r\n")
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None
        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]
        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\x00" not in value:
                self._last_id = value
        return None

    def _dispatch(self) -> Optional[SseEvent]:
        if not self._data and not self._event:
            return None
        event = SseEvent(event=self._event or DEFAULT_EVENT, data="\n".join(self._data), event_id=self._last_id)
        self._event = ""
        self._data = []
        return event


async def iter_sse(lines: AsyncIterator[str]) -> AsyncIterator[SseEvent]:
    decoder = SseDecoder()
    async for line in lines:
        event = decoder.feed(line)
        if event is not None:
            yield event
