"""Inter-agent bus data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class MessageType(str, Enum):
    """Kinds of inter-agent messages."""

    MESSAGE = "message"
    HANDOFF = "handoff"
    REQUEST = "request"
    RESPONSE = "response"
    BROADCAST = "broadcast"


class HandoffStatus(str, Enum):
    """Handoff lifecycle states."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (HandoffStatus.COMPLETED, HandoffStatus.REJECTED)


# Legal transitions; anything else is a TransitionError.
HANDOFF_TRANSITIONS: dict[HandoffStatus, frozenset[HandoffStatus]] = {
    HandoffStatus.PENDING: frozenset({HandoffStatus.ACCEPTED, HandoffStatus.REJECTED}),
    HandoffStatus.ACCEPTED: frozenset({HandoffStatus.COMPLETED, HandoffStatus.REJECTED}),
    HandoffStatus.COMPLETED: frozenset(),
    HandoffStatus.REJECTED: frozenset(),
}


@dataclass
class Message:
    """One inter-agent communication. ``to_agent`` may be the broadcast sentinel."""

    id: str
    from_agent: str
    to_agent: str
    content: str
    type: MessageType
    timestamp: datetime
    read: bool = False
    origin_key: str | None = None  # dedupe key for directive-created messages


@dataclass
class Handoff:
    """A formally tracked task transfer between two agents."""

    id: str
    from_agent: str
    to_agent: str
    task: str
    created_at: datetime
    updated_at: datetime
    context: dict = field(default_factory=dict)
    status: HandoffStatus = HandoffStatus.PENDING
    result: str | None = None
    origin_key: str | None = None
