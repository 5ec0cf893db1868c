"""Chat relay module."""

from .relay import (
    BRIDGE_PROVIDER,
    ChatRelay,
    ChatTurn,
    IChatRelay,
    replay_tokens,
    validate_messages,
)
from .sse import DONE_LINE, encode_frame, sse_lines

__all__ = [
    "BRIDGE_PROVIDER",
    "ChatRelay",
    "ChatTurn",
    "IChatRelay",
    "DONE_LINE",
    "encode_frame",
    "replay_tokens",
    "sse_lines",
    "validate_messages",
]
