"""Core data models for Agent Workspace."""

from .agents import AgentConfig, AgentSettings
from .bridge import BridgeDirection, BridgeItem, BridgeStatus
from .bus import HANDOFF_TRANSITIONS, Handoff, HandoffStatus, Message, MessageType
from .common import new_id, utcnow
from .conversation import ROLES, ConversationEntry, Role

__all__ = [
    # Agents
    "AgentConfig",
    "AgentSettings",
    # Conversations
    "ConversationEntry",
    "Role",
    "ROLES",
    # Bus
    "Message",
    "MessageType",
    "Handoff",
    "HandoffStatus",
    "HANDOFF_TRANSITIONS",
    # Bridge
    "BridgeItem",
    "BridgeStatus",
    "BridgeDirection",
    # Helpers
    "new_id",
    "utcnow",
]
