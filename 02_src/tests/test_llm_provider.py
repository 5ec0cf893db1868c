"""Tests for completion providers."""

import json
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import anthropic
import httpx
import pytest

from agent_workspace.errors import UpstreamError
from agent_workspace.llm import AnthropicProvider, OpenAICompatibleProvider, build_providers
from agent_workspace.llm.llm_provider import DASHSCOPE_MODELS
from agent_workspace.models import AgentConfig

AGENT = AgentConfig(
    id="code",
    name="Coder",
    model="qwen-coder",
    system_prompt="You write code.",
    temperature=0.2,
    max_tokens=512,
)


async def drain(provider, messages=None) -> bytes:
    chunks = []
    async for chunk in provider.stream(AGENT, messages or [{"role": "user", "content": "hi"}], "SYSTEM"):
        chunks.append(chunk)
    return b"".join(chunks)


class TestOpenAICompatibleProvider:
    """Tests for OpenAICompatibleProvider."""

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            OpenAICompatibleProvider("openrouter", "https://example.test/v1", None)

    async def test_stream_posts_request_and_yields_bytes(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b"data: [DONE]\n\n")

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = OpenAICompatibleProvider(
            "dashscope",
            "https://example.test/v1/",
            "secret",
            extra_headers={"X-Title": "Agent Workspace"},
            model_aliases=DASHSCOPE_MODELS,
            client=client,
        )

        body = await drain(provider)
        await provider.close()

        assert body == b"data: [DONE]\n\n"
        assert seen["url"] == "https://example.test/v1/chat/completions"
        assert seen["headers"]["authorization"] == "Bearer secret"
        assert seen["headers"]["x-title"] == "Agent Workspace"
        assert seen["body"]["model"] == "qwen-coder-plus-latest"
        assert seen["body"]["stream"] is True
        assert seen["body"]["max_tokens"] == 512
        assert seen["body"]["messages"][0] == {"role": "system", "content": "SYSTEM"}
        assert seen["body"]["messages"][1] == {"role": "user", "content": "hi"}

    async def test_error_status_raises_upstream_error(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(429, text="slow down"))
        )
        provider = OpenAICompatibleProvider("openrouter", "https://example.test/v1", "k", client=client)

        with pytest.raises(UpstreamError) as excinfo:
            await drain(provider)
        assert excinfo.value.status == 429
        assert "slow down" in excinfo.value.message

    async def test_transport_error_raises_upstream_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        provider = OpenAICompatibleProvider("openrouter", "https://example.test/v1", "k", client=client)

        with pytest.raises(UpstreamError) as excinfo:
            await drain(provider)
        assert excinfo.value.provider == "openrouter"

    def test_model_name_passthrough(self):
        provider = OpenAICompatibleProvider(
            "openrouter", "https://example.test/v1", "k", client=Mock()
        )
        assert provider.model_name("openai/gpt-4o-mini") == "openai/gpt-4o-mini"


class TestAnthropicProvider:
    """Tests for AnthropicProvider."""

    def test_init_without_api_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        with patch("agent_workspace.llm.llm_provider.anthropic.AsyncAnthropic"):
            with pytest.raises(ValueError):
                AnthropicProvider()

    async def test_stream_folds_system_turns(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")

        async def iter_bytes():
            yield b"event: message_stop\n"
            yield b'data: {"type": "message_stop"}\n\n'

        response = Mock()
        response.iter_bytes = iter_bytes
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=response)
        context.__aexit__ = AsyncMock(return_value=False)

        mock_client = Mock()
        mock_client.messages.with_streaming_response.create = Mock(return_value=context)
        mock_client.close = AsyncMock()

        with patch(
            "agent_workspace.llm.llm_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicProvider()
            body = await drain(
                provider,
                [
                    {"role": "system", "content": "Be brief."},
                    {"role": "user", "content": "hi"},
                ],
            )
            await provider.close()

        assert body.endswith(b'{"type": "message_stop"}\n\n')
        kwargs = mock_client.messages.with_streaming_response.create.call_args.kwargs
        assert kwargs["system"] == "SYSTEM\n\nBe brief."
        assert kwargs["messages"] == [{"role": "user", "content": "hi"}]
        assert kwargs["stream"] is True
        assert kwargs["model"] == "qwen-coder"
        mock_client.close.assert_awaited_once()

    async def test_api_error_becomes_upstream_error(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test_key")
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")

        mock_client = Mock()
        mock_client.messages.with_streaming_response.create = Mock(
            side_effect=anthropic.APIConnectionError(request=request)
        )

        with patch(
            "agent_workspace.llm.llm_provider.anthropic.AsyncAnthropic",
            return_value=mock_client,
        ):
            provider = AnthropicProvider()
            with pytest.raises(UpstreamError) as excinfo:
                await drain(provider)

        assert excinfo.value.provider == "anthropic"


class TestBuildProviders:
    """Tests for build_providers()."""

    def test_only_configured_providers(self, monkeypatch):
        monkeypatch.setenv("OPENROUTER_API_KEY", "or-key")
        monkeypatch.delenv("DASHSCOPE_API_KEY", raising=False)
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        providers = build_providers()
        assert set(providers) == {"openrouter"}
        assert providers["openrouter"].name == "openrouter"

    def test_no_keys(self, monkeypatch):
        for name in ("OPENROUTER_API_KEY", "DASHSCOPE_API_KEY", "ANTHROPIC_API_KEY"):
            monkeypatch.delenv(name, raising=False)
        assert build_providers() == {}
