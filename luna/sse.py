"""
Server-Sent Events framing for streamed answers

Wire format: one ``data: <json>`` line per event followed by a blank line.

    data: {"content": "Dear"}
    data: {"content": " Ana,"}
    data: {"done": true}

An error after the stream started is sent as ``data: {"error": "..."}``.
Readers must skip any line that is not a JSON data line.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Dict, Iterable, Iterator, Optional

from fastapi.responses import StreamingResponse

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


class EventKind(str, Enum):
    DELTA = "delta"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class StreamEvent:
    """One caller-facing relay event"""
    kind: EventKind
    text: str = ""

    @classmethod
    def delta(cls, text: str) -> "StreamEvent":
        return cls(EventKind.DELTA, text)

    @classmethod
    def done(cls) -> "StreamEvent":
        return cls(EventKind.DONE)

    @classmethod
    def error(cls, message: str) -> "StreamEvent":
        return cls(EventKind.ERROR, message)

    def to_payload(self) -> Dict[str, Any]:
        if self.kind == EventKind.DELTA:
            return {"content": self.text}
        if self.kind == EventKind.DONE:
            return {"done": True}
        return {"error": self.text}


def encode_event(event: StreamEvent) -> str:
    """Frame one event for the wire."""
    return f"data: {json.dumps(event.to_payload(), ensure_ascii=False)}\n\n"


async def encode_stream(events: AsyncIterator[StreamEvent]) -> AsyncIterator[str]:
    async for event in events:
        yield encode_event(event)


def event_stream_response(events: AsyncIterator[StreamEvent]) -> StreamingResponse:
    """Wrap a relay in a ``text/event-stream`` response."""
    return StreamingResponse(
        encode_stream(events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def parse_sse_line(line: str) -> Optional[Dict[str, Any]]:
    """
    Payload of one ``data:`` line, or None for anything else.

    Blank lines, comments, other fields and non-JSON data are all ignorable.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    try:
        payload = json.loads(line[len("data:"):].strip())
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


def iter_sse_payloads(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """Parsed payloads from a line iterator, stopping after a terminal event."""
    for line in lines:
        payload = parse_sse_line(line)
        if payload is None:
            continue
        yield payload
        if payload.get("done") or "error" in payload:
            return
