"""Agent configuration data models."""

from dataclasses import dataclass


@dataclass
class AgentConfig:
    """Configuration of one agent persona."""

    id: str
    name: str
    model: str
    system_prompt: str
    temperature: float = 0.7
    max_tokens: int = 4096
    provider: str = "openrouter"
    icon: str | None = None
    color: str | None = None
    group: str | None = None
    display_order: int = 100


@dataclass
class AgentSettings:
    """Per-user overrides for an agent. ``None`` keeps the configured value."""

    user_id: str
    agent_id: str
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    system_prompt: str | None = None
