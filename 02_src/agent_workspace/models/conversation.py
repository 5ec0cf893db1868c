"""Conversation-related data models."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Role = Literal["user", "assistant", "system"]

ROLES: frozenset[str] = frozenset({"user", "assistant", "system"})


@dataclass
class ConversationEntry:
    """A single turn in one agent's dialogue."""

    agent_id: str
    role: Role
    content: str
    timestamp: datetime
    id: int | None = None  # assigned by storage
    session_id: str | None = None
    metadata: dict | None = None
