"""Client-facing server-sent-event framing."""

import json
from typing import AsyncIterator

DONE_LINE = "data: [DONE]\n\n"


def encode_frame(frame: dict) -> str:
    """``data: <json>`` followed by a blank line."""
    return f"data: {json.dumps(frame, ensure_ascii=False)}\n\n"


async def sse_lines(
    frames: AsyncIterator[dict], first: dict | None = None
) -> AsyncIterator[str]:
    """Encode relay frames, ending with the ``[DONE]`` sentinel line."""
    if first is not None:
        yield encode_frame(first)
    async for frame in frames:
        yield encode_frame(frame)
    yield DONE_LINE
