"""Streaming completion providers.

Providers yield the raw upstream bytes; frame reassembly happens in the
relay (see ``frames.FrameDecoder``).
"""

import os
from typing import AsyncIterator, Protocol

import anthropic
import httpx

from ..errors import UpstreamError
from ..logging_config import get_logger
from ..models import AgentConfig

logger = get_logger(__name__)

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
DASHSCOPE_BASE_URL = "https://dashscope.aliyuncs.com/compatible-mode/v1"

# Short names accepted in agent configs for DashScope (Qwen) models
DASHSCOPE_MODELS = {
    "qwen-max": "qwen-max-latest",
    "qwen-max-thinking": "qwen-max-latest",
    "qwen-plus": "qwen-plus-latest",
    "qwen-turbo": "qwen-turbo-latest",
    "qwen-coder": "qwen-coder-plus-latest",
    "qwen-vl": "qwen-vl-max-latest",
    "qwq": "qwq-plus-latest",
}

DEFAULT_TIMEOUT = httpx.Timeout(60.0, connect=10.0)


class ILLMProvider(Protocol):
    """A streaming chat-completion backend."""

    name: str

    def stream(
        self,
        agent: AgentConfig,
        messages: list[dict],  # [{"role": "user", "content": "..."}]
        system: str,
    ) -> AsyncIterator[bytes]:
        """Start a streaming completion and yield raw response bytes."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


class OpenAICompatibleProvider:
    """Any ``/chat/completions`` endpoint that streams server-sent events."""

    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str | None,
        extra_headers: dict[str, str] | None = None,
        model_aliases: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        if not api_key:
            raise ValueError(f"API key for provider {name!r} not set")

        self.name = name
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            **(extra_headers or {}),
        }
        self._model_aliases = model_aliases or {}
        self._client = client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)

    def model_name(self, model: str) -> str:
        """Translate a configured model name to the provider's name."""
        return self._model_aliases.get(model, model)

    async def stream(
        self,
        agent: AgentConfig,
        messages: list[dict],
        system: str,
    ) -> AsyncIterator[bytes]:
        """POST a streaming completion and yield raw response bytes."""
        body = {
            "model": self.model_name(agent.model),
            "messages": [{"role": "system", "content": system}, *messages],
            "temperature": agent.temperature,
            "max_tokens": agent.max_tokens,
            "stream": True,
        }

        try:
            async with self._client.stream(
                "POST",
                f"{self._base_url}/chat/completions",
                json=body,
                headers=self._headers,
            ) as response:
                if response.status_code >= 400:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise UpstreamError(
                        f"API error: {detail[:500]}",
                        provider=self.name,
                        status=response.status_code,
                    )

                async for chunk in response.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            raise UpstreamError(f"{self.name} request failed: {e}", provider=self.name) from e

    async def close(self) -> None:
        await self._client.aclose()


class AnthropicProvider:
    """Anthropic Messages API, read as a raw event stream."""

    name = "anthropic"

    def __init__(self, api_key: str | None = None):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    async def stream(
        self,
        agent: AgentConfig,
        messages: list[dict],
        system: str,
    ) -> AsyncIterator[bytes]:
        """Stream a completion; system turns are folded into ``system``."""
        extra_system = [m["content"] for m in messages if m["role"] == "system"]
        turns = [
            {"role": m["role"], "content": m["content"]}
            for m in messages
            if m["role"] != "system"
        ]

        try:
            async with self._client.messages.with_streaming_response.create(
                model=agent.model,
                system="\n\n".join([system, *extra_system]),
                messages=turns,
                max_tokens=agent.max_tokens,
                temperature=agent.temperature,
                stream=True,
            ) as response:
                async for chunk in response.iter_bytes():
                    yield chunk
        except anthropic.APIError as e:
            raise UpstreamError(
                f"LLM API error: {e}",
                provider=self.name,
                status=getattr(e, "status_code", None),
            ) from e

    async def close(self) -> None:
        await self._client.close()


def build_providers() -> dict[str, ILLMProvider]:
    """Create every provider whose API key is present in the environment."""
    providers: dict[str, ILLMProvider] = {}

    openrouter_key = os.getenv("OPENROUTER_API_KEY")
    if openrouter_key:
        providers["openrouter"] = OpenAICompatibleProvider(
            "openrouter",
            OPENROUTER_BASE_URL,
            openrouter_key,
            extra_headers={
                "HTTP-Referer": "https://agent-workspace.local",
                "X-Title": "Agent Workspace",
            },
        )

    dashscope_key = os.getenv("DASHSCOPE_API_KEY")
    if dashscope_key:
        providers["dashscope"] = OpenAICompatibleProvider(
            "dashscope",
            DASHSCOPE_BASE_URL,
            dashscope_key,
            model_aliases=DASHSCOPE_MODELS,
        )

    if os.getenv("ANTHROPIC_API_KEY"):
        providers["anthropic"] = AnthropicProvider()

    if not providers:
        logger.warning("No completion provider API keys configured")
    else:
        logger.info("Providers configured: %s", ", ".join(sorted(providers)))
    return providers
