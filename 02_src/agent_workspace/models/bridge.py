"""Bridge queue data models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class BridgeDirection(str, Enum):
    """Which side of the bridge an item travels to."""

    TO_BRIDGE = "to_bridge"
    FROM_BRIDGE = "from_bridge"


class BridgeStatus(str, Enum):
    """Bridge item lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"


@dataclass
class BridgeItem:
    """A unit of work routed to the external bridge participant."""

    id: str
    agent_id: str
    created_at: datetime
    updated_at: datetime
    payload: dict = field(default_factory=dict)
    direction: BridgeDirection = BridgeDirection.TO_BRIDGE
    status: BridgeStatus = BridgeStatus.PENDING
    response: str | None = None
