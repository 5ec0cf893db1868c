"""Read-only projection of cross-agent state for the overview agent."""

from ..directory import IAgentDirectory
from ..models import Handoff, Message, utcnow
from ..storage import IStorage
from .agent_bus import IAgentBus

PREVIEW_LENGTH = 200
RECENT_MESSAGES = 10


def _handoff_summary(handoff: Handoff) -> dict:
    return {
        "id": handoff.id,
        "from": handoff.from_agent,
        "to": handoff.to_agent,
        "task": handoff.task,
        "status": handoff.status.value,
        "created_at": handoff.created_at.isoformat(),
    }


def _message_summary(message: Message) -> dict:
    return {
        "id": message.id,
        "from": message.from_agent,
        "to": message.to_agent,
        "type": message.type.value,
        "content": message.content,
        "timestamp": message.timestamp.isoformat(),
    }


async def build_overview(
    storage: IStorage,
    directory: IAgentDirectory,
    bus: IAgentBus,
    overview_agent_id: str = "overview",
) -> dict:
    """Summaries per agent plus pending handoffs and recent bus traffic.

    Pure read: nothing is marked read and nothing is written.
    """
    pending = await bus.get_pending_handoffs()
    recent = await bus.get_all_activity(limit=RECENT_MESSAGES)

    summaries = {}
    for agent in directory.all():
        if agent.id == overview_agent_id:
            continue

        history = await storage.get_conversation(agent.id)
        last = history[-1] if history else None
        summaries[agent.id] = {
            "name": agent.name,
            "icon": agent.icon,
            "message_count": len(history),
            "last_activity": "active" if history else "idle",
            "last_message": (
                {"role": last.role, "preview": last.content[:PREVIEW_LENGTH]}
                if last
                else None
            ),
            "pending_handoffs_to": sum(1 for h in pending if h.to_agent == agent.id),
            "pending_handoffs_from": sum(1 for h in pending if h.from_agent == agent.id),
        }

    return {
        "timestamp": utcnow().isoformat(),
        "agent_summaries": summaries,
        "pending_handoffs": [_handoff_summary(h) for h in pending],
        "recent_inter_agent_messages": [_message_summary(m) for m in recent],
    }
