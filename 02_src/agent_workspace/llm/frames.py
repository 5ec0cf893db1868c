"""Reassembly of server-sent-event frames from raw upstream bytes."""

import codecs
import json
from dataclasses import dataclass
from typing import Literal

from ..logging_config import get_logger

logger = get_logger(__name__)

DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class StreamEvent:
    """A decoded upstream event."""

    kind: Literal["delta", "end", "error"]
    text: str = ""


END = StreamEvent("end")


def _event_from_payload(payload) -> StreamEvent | None:
    """Map a JSON frame to an event. Handles OpenAI-style and Anthropic streams."""
    if not isinstance(payload, dict):
        return None

    error = payload.get("error")
    if error:
        if isinstance(error, dict):
            return StreamEvent("error", str(error.get("message") or error))
        return StreamEvent("error", str(error))

    # Anthropic
    event_type = payload.get("type")
    if event_type == "message_stop":
        return END
    if event_type == "content_block_delta":
        text = (payload.get("delta") or {}).get("text")
        return StreamEvent("delta", text) if text else None

    # OpenAI-compatible: choices[0].delta.content
    choices = payload.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        content = (choices[0].get("delta") or {}).get("content")
        if isinstance(content, str) and content:
            return StreamEvent("delta", content)

    return None


class FrameDecoder:
    """Incremental decoder for ``data: ...`` lines split across arbitrary chunks.

    Only complete lines are interpreted; a trailing partial line (or a
    partial UTF-8 sequence) is carried over to the next ``feed``.
    """

    def __init__(self):
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[StreamEvent]:
        """Consume a chunk and return the events of every line it completes."""
        self._buffer += self._utf8.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def finish(self) -> list[StreamEvent]:
        """Flush whatever is left once the upstream stream has ended."""
        tail = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        return self._parse_lines([tail])

    def _parse_lines(self, lines: list[str]) -> list[StreamEvent]:
        events = []
        for line in lines:
            event = self._parse_line(line)
            if event is not None:
                events.append(event)
        return events

    def _parse_line(self, line: str) -> StreamEvent | None:
        line = line.strip()
        if not line.startswith("data:"):
            return None

        data = line[len("data:"):].strip()
        if data == DONE_SENTINEL:
            return END

        try:
            payload = json.loads(data)
        except ValueError:
            logger.debug("Skipping unparseable frame: %s", data[:100])
            return None

        return _event_from_payload(payload)
