"""Agent directory module."""

from .directory import AgentDirectory, IAgentDirectory, apply_settings

__all__ = ["AgentDirectory", "IAgentDirectory", "apply_settings"]
