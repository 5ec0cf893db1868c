"""Pytest configuration and fixtures."""

import asyncio
import json
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from agent_workspace.config import RelaySettings  # noqa: E402
from agent_workspace.errors import UpstreamError  # noqa: E402
from agent_workspace.models import AgentConfig  # noqa: E402


def openai_frame(content: str) -> bytes:
    """One OpenAI-style streaming frame."""
    payload = {"choices": [{"delta": {"content": content}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


DONE_FRAME = b"data: [DONE]\n\n"


class FakeProvider:
    """Provider double that replays canned byte chunks."""

    def __init__(self, name: str = "openrouter"):
        self.name = name
        self.chunks: list[bytes] = []
        self.error: Exception | None = None
        self.error_after: int | None = None
        self.calls: list[dict] = []
        self.closed = False
        self.stream_closed = False

    def reply(self, *parts: str, done: bool = True) -> "FakeProvider":
        self.chunks = [openai_frame(p) for p in parts]
        if done:
            self.chunks.append(DONE_FRAME)
        return self

    async def stream(self, agent, messages, system):
        self.calls.append({"agent": agent, "messages": messages, "system": system})
        try:
            for index, chunk in enumerate(self.chunks):
                if self.error is not None and self.error_after == index:
                    raise self.error
                yield chunk
                await asyncio.sleep(0)
            if self.error is not None and self.error_after is None:
                raise self.error
        finally:
            self.stream_closed = True

    async def close(self) -> None:
        self.closed = True


def make_agents() -> list[AgentConfig]:
    return [
        AgentConfig(
            id="overview",
            name="Overview",
            model="test-model",
            system_prompt="You coordinate.",
            display_order=0,
        ),
        AgentConfig(
            id="code",
            name="Coder",
            model="test-model",
            system_prompt="You write code.",
            display_order=10,
        ),
        AgentConfig(
            id="security",
            name="Security",
            model="test-model",
            system_prompt="You review code.",
            display_order=20,
        ),
        AgentConfig(
            id="writer",
            name="Writer",
            model="test-model",
            system_prompt="You write docs.",
            display_order=30,
        ),
        AgentConfig(
            id="computer",
            name="Computer the Cat",
            model="bridge",
            system_prompt="External.",
            provider="bridge",
            display_order=40,
        ),
    ]


@pytest.fixture
def agents_file(tmp_path):
    """agents.config.json written in the camelCase file format."""
    data = {
        a.id: {
            "id": a.id,
            "name": a.name,
            "model": a.model,
            "provider": a.provider,
            "systemPrompt": a.system_prompt,
            "displayOrder": a.display_order,
        }
        for a in make_agents()
    }
    path = tmp_path / "agents.config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest_asyncio.fixture
async def storage():
    """Create in-memory storage for testing."""
    from agent_workspace.storage import Storage

    st = Storage(":memory:")
    await st.init()
    yield st
    await st.close()


@pytest.fixture
def directory():
    from agent_workspace.directory import AgentDirectory

    return AgentDirectory(make_agents())


@pytest.fixture
def bus(storage, directory):
    from agent_workspace.bus import AgentBus

    return AgentBus(storage, directory)


@pytest.fixture
def extractor(bus, directory):
    from agent_workspace.bus import CommandExtractor

    return CommandExtractor(bus, directory)


@pytest.fixture
def settings():
    return RelaySettings(
        bridge_poll_interval=0.01,
        bridge_timeout=0.2,
        bridge_replay_delay=0,
    )


@pytest.fixture
def bridge_queue(storage, settings):
    from agent_workspace.bridge import BridgeQueue

    return BridgeQueue(
        storage,
        poll_interval=settings.bridge_poll_interval,
        timeout=settings.bridge_timeout,
    )


@pytest.fixture
def provider():
    return FakeProvider("openrouter")


@pytest.fixture
def relay(storage, directory, bus, extractor, bridge_queue, provider, settings):
    from agent_workspace.relay import ChatRelay

    return ChatRelay(
        storage,
        directory,
        bus,
        extractor,
        bridge_queue,
        {"openrouter": provider},
        settings,
    )


@pytest.fixture
def upstream_error():
    return UpstreamError("API error: overloaded", provider="openrouter", status=529)

