"""Request and response models for the HTTP API.

JSON bodies use camelCase keys; the models accept snake_case as well.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models import AgentConfig, BridgeItem, ConversationEntry, Handoff, Message


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Requests


class ChatRequest(CamelModel):
    """Loosely typed so the relay can answer shape errors with 400."""

    agent_id: Any = None
    messages: Any = None
    session_id: str | None = None


class SendRequest(CamelModel):
    to_agent: str
    content: str
    type: str = "message"


class HandoffCreateRequest(CamelModel):
    from_agent: str
    to_agent: str
    task: str
    context: dict[str, Any] = Field(default_factory=dict)


class HandoffUpdateRequest(CamelModel):
    status: str
    result: str | None = None


class SettingsUpdateRequest(CamelModel):
    model: str | None = Field(None, max_length=200)
    temperature: float | None = Field(None, ge=0, le=2)
    max_tokens: int | None = Field(None, gt=0, le=128_000)
    system_prompt: str | None = Field(None, max_length=50_000)


class BridgeRespondRequest(CamelModel):
    response: str


# Responses


class AgentResponse(CamelModel):
    id: str
    name: str
    model: str
    provider: str
    temperature: float
    max_tokens: int
    icon: str | None = None
    color: str | None = None
    group: str | None = None
    display_order: int = 100


class ConversationEntryResponse(CamelModel):
    id: int | None
    agent_id: str
    role: str
    content: str
    timestamp: datetime
    session_id: str | None = None
    metadata: dict[str, Any] | None = None


class MessageResponse(CamelModel):
    id: str
    from_agent: str
    to_agent: str
    content: str
    type: str
    timestamp: datetime
    read: bool


class HandoffResponse(CamelModel):
    id: str
    from_agent: str
    to_agent: str
    task: str
    context: dict[str, Any]
    status: str
    result: str | None
    created_at: datetime
    updated_at: datetime


class BridgeItemResponse(CamelModel):
    id: str
    agent_id: str
    payload: dict[str, Any]
    direction: str
    status: str
    response: str | None
    created_at: datetime
    updated_at: datetime


class SendResponse(CamelModel):
    success: bool = True
    message: MessageResponse


class HandoffEnvelope(CamelModel):
    success: bool = True
    handoff: HandoffResponse


class ClearResponse(CamelModel):
    success: bool = True
    deleted: int


class SettingsResponse(CamelModel):
    success: bool = True
    agent: AgentResponse


# Mapping


def agent_to_dict(agent: AgentConfig) -> dict:
    return {
        "id": agent.id,
        "name": agent.name,
        "model": agent.model,
        "provider": agent.provider,
        "temperature": agent.temperature,
        "max_tokens": agent.max_tokens,
        "icon": agent.icon,
        "color": agent.color,
        "group": agent.group,
        "display_order": agent.display_order,
    }


def entry_to_dict(entry: ConversationEntry) -> dict:
    return {
        "id": entry.id,
        "agent_id": entry.agent_id,
        "role": entry.role,
        "content": entry.content,
        "timestamp": entry.timestamp,
        "session_id": entry.session_id,
        "metadata": entry.metadata,
    }


def message_to_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "from_agent": message.from_agent,
        "to_agent": message.to_agent,
        "content": message.content,
        "type": message.type.value,
        "timestamp": message.timestamp,
        "read": message.read,
    }


def handoff_to_dict(handoff: Handoff) -> dict:
    return {
        "id": handoff.id,
        "from_agent": handoff.from_agent,
        "to_agent": handoff.to_agent,
        "task": handoff.task,
        "context": handoff.context,
        "status": handoff.status.value,
        "result": handoff.result,
        "created_at": handoff.created_at,
        "updated_at": handoff.updated_at,
    }


def bridge_item_to_dict(item: BridgeItem) -> dict:
    return {
        "id": item.id,
        "agent_id": item.agent_id,
        "payload": item.payload,
        "direction": item.direction.value,
        "status": item.status.value,
        "response": item.response,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }
