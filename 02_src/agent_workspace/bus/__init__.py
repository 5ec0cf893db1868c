"""Agent bus module."""

from .agent_bus import AgentBus, IAgentBus
from .commands import CommandExtractor, Directive, DirectiveKind, scan_directives
from .overview import build_overview

__all__ = [
    "AgentBus",
    "IAgentBus",
    "CommandExtractor",
    "Directive",
    "DirectiveKind",
    "scan_directives",
    "build_overview",
]
