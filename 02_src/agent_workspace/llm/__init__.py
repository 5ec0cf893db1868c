"""LLM module."""

from .frames import FrameDecoder, StreamEvent
from .llm_provider import (
    AnthropicProvider,
    ILLMProvider,
    OpenAICompatibleProvider,
    build_providers,
)

__all__ = [
    "AnthropicProvider",
    "FrameDecoder",
    "ILLMProvider",
    "OpenAICompatibleProvider",
    "StreamEvent",
    "build_providers",
]
