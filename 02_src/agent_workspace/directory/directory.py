"""Agent directory: read-only lookup of agent configuration."""

import json
from dataclasses import replace
from pathlib import Path
from typing import Protocol

from ..logging_config import get_logger
from ..models import AgentConfig, AgentSettings

logger = get_logger(__name__)


class IAgentDirectory(Protocol):
    """Lookup from agent id to configuration."""

    def get(self, agent_id: str) -> AgentConfig | None:
        """Exact lookup. ``None`` means the agent does not exist."""
        ...

    def resolve(self, agent_id: str) -> str | None:
        """Case-insensitive lookup returning the canonical id."""
        ...

    def ids(self) -> list[str]:
        """All agent ids."""
        ...

    def all(self) -> list[AgentConfig]:
        """All agents ordered for display."""
        ...


def _agent_from_dict(agent_id: str, data: dict) -> AgentConfig:
    """Build an AgentConfig from a config-file entry (camelCase or snake_case keys)."""

    def pick(*keys, default=None):
        for key in keys:
            if data.get(key) is not None:
                return data[key]
        return default

    model = pick("model")
    system_prompt = pick("systemPrompt", "system_prompt")
    if not model:
        raise ValueError(f"Agent {agent_id!r} has no model")
    if system_prompt is None:
        raise ValueError(f"Agent {agent_id!r} has no systemPrompt")

    return AgentConfig(
        id=agent_id,
        name=pick("name", default=agent_id),
        model=model,
        system_prompt=system_prompt,
        temperature=float(pick("temperature", default=0.7)),
        max_tokens=int(pick("maxTokens", "max_tokens", default=4096)),
        provider=pick("provider", default="openrouter"),
        icon=pick("icon"),
        color=pick("color"),
        group=pick("group"),
        display_order=int(pick("displayOrder", "display_order", default=100)),
    )


class AgentDirectory:
    """In-memory directory built once from the agents config file."""

    def __init__(self, agents: dict[str, AgentConfig] | list[AgentConfig]):
        if isinstance(agents, dict):
            agents = list(agents.values())
        self._agents: dict[str, AgentConfig] = {a.id: a for a in agents}
        self._by_lower: dict[str, str] = {a.id.lower(): a.id for a in agents}

    @classmethod
    def from_file(cls, path: str | Path) -> "AgentDirectory":
        """Load ``{"<id>": {...}}`` from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            raw = json.load(f)

        agents = [
            _agent_from_dict(data.get("id", agent_id), data)
            for agent_id, data in raw.items()
        ]
        logger.info("Loaded %s agents from %s", len(agents), path)
        return cls(agents)

    def get(self, agent_id: str) -> AgentConfig | None:
        """Exact lookup. ``None`` means the agent does not exist."""
        return self._agents.get(agent_id)

    def resolve(self, agent_id: str) -> str | None:
        """Case-insensitive lookup returning the canonical id."""
        return self._by_lower.get(agent_id.lower())

    def ids(self) -> list[str]:
        """All agent ids."""
        return list(self._agents)

    def all(self) -> list[AgentConfig]:
        """All agents ordered for display."""
        return sorted(self._agents.values(), key=lambda a: a.display_order)


def apply_settings(agent: AgentConfig, settings: AgentSettings | None) -> AgentConfig:
    """Merge per-user overrides into an agent config."""
    if settings is None:
        return agent

    return replace(
        agent,
        model=settings.model or agent.model,
        temperature=(
            settings.temperature if settings.temperature is not None else agent.temperature
        ),
        max_tokens=settings.max_tokens if settings.max_tokens is not None else agent.max_tokens,
        system_prompt=settings.system_prompt or agent.system_prompt,
    )
