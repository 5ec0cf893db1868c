"""Agent Workspace: multi-agent chat relay and inter-agent message bus."""

from .app import Application, IApplication
from .bridge import BridgeClient, BridgeQueue
from .bus import AgentBus, CommandExtractor, IAgentBus
from .directory import AgentDirectory, IAgentDirectory
from .llm import AnthropicProvider, ILLMProvider, OpenAICompatibleProvider
from .models import (
    AgentConfig,
    AgentSettings,
    BridgeItem,
    ConversationEntry,
    Handoff,
    HandoffStatus,
    Message,
    MessageType,
)
from .relay import ChatRelay, IChatRelay
from .storage import IStorage, Storage

__all__ = [
    # Application
    "Application",
    "IApplication",
    # Models
    "AgentConfig",
    "AgentSettings",
    "ConversationEntry",
    "Message",
    "MessageType",
    "Handoff",
    "HandoffStatus",
    "BridgeItem",
    # Components
    "IStorage",
    "Storage",
    "IAgentDirectory",
    "AgentDirectory",
    "IAgentBus",
    "AgentBus",
    "CommandExtractor",
    "ILLMProvider",
    "OpenAICompatibleProvider",
    "AnthropicProvider",
    "IChatRelay",
    "ChatRelay",
    "BridgeQueue",
    "BridgeClient",
]
