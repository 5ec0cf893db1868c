"""System prompt augmentation applied once per chat turn, before the upstream call."""

import json

from ..bus import IAgentBus, build_overview
from ..directory import IAgentDirectory
from ..models import AgentConfig
from ..storage import IStorage


async def build_system_prompt(
    agent: AgentConfig,
    storage: IStorage,
    directory: IAgentDirectory,
    bus: IAgentBus,
    overview_agent_id: str,
) -> str:
    """Return the agent's system prompt plus injected bus context.

    The overview agent gets a snapshot of cross-agent state. Every other
    agent gets its unread inbox, which is marked read in the process.
    """
    system = agent.system_prompt

    if agent.id == overview_agent_id:
        snapshot = await build_overview(storage, directory, bus, overview_agent_id)
        state = json.dumps(snapshot, indent=2, ensure_ascii=False)
        return f"{system}\n\n--- CURRENT SYSTEM STATE ---\n{state}\n--- END STATE ---"

    inbox = await bus.get_unread_for(agent.id)
    if inbox:
        lines = "\n".join(f"[{m.from_agent}]: {m.content}" for m in inbox)
        system += f"\n\n--- MESSAGES FROM OTHER AGENTS ---\n{lines}\n--- END MESSAGES ---"
    return system
