"""Agent directory, per-user settings and conversation history routes."""

from fastapi import APIRouter, Depends, Query

from ...app import Application
from ...directory import apply_settings
from ...errors import NotFound
from ...models import AgentConfig, AgentSettings
from ..deps import caller_dependency
from ..errors import to_http
from ..schemas import (
    AgentResponse,
    ClearResponse,
    ConversationEntryResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    agent_to_dict,
    entry_to_dict,
)


def create_agents_router(app: Application) -> APIRouter:
    """Create agents router."""
    router = APIRouter(prefix="/api", tags=["agents"])
    caller = caller_dependency(app)

    def require(agent_id: str) -> AgentConfig:
        agent = app.directory.get(agent_id)
        if agent is None:
            raise NotFound(f"Agent not found: {agent_id}")
        return agent

    async def merged(agent: AgentConfig, user_id: str) -> AgentConfig:
        return apply_settings(agent, await app.storage.get_agent_settings(user_id, agent.id))

    @router.get("/agents", response_model=list[AgentResponse])
    async def list_agents(user_id: str = Depends(caller)) -> list[dict]:
        """Directory listing merged with the caller's settings, in display order."""
        try:
            return [agent_to_dict(await merged(a, user_id)) for a in app.directory.all()]
        except Exception as e:
            raise to_http(e)

    @router.get("/agents/{agent_id}", response_model=AgentResponse)
    async def get_agent(agent_id: str, user_id: str = Depends(caller)) -> dict:
        try:
            return agent_to_dict(await merged(require(agent_id), user_id))
        except Exception as e:
            raise to_http(e)

    @router.patch("/agents/{agent_id}/settings", response_model=SettingsResponse)
    async def update_settings(
        agent_id: str,
        body: SettingsUpdateRequest,
        user_id: str = Depends(caller),
    ) -> dict:
        """Store the caller's overrides. Omitted fields keep their stored value."""
        try:
            agent = require(agent_id)
            current = await app.storage.get_agent_settings(user_id, agent_id)
            settings = current or AgentSettings(user_id=user_id, agent_id=agent_id)
            for field, value in body.model_dump(exclude_unset=True).items():
                setattr(settings, field, value)

            await app.storage.save_agent_settings(settings)
            return {"success": True, "agent": agent_to_dict(apply_settings(agent, settings))}
        except Exception as e:
            raise to_http(e)

    @router.get(
        "/conversations/{agent_id}", response_model=list[ConversationEntryResponse]
    )
    async def get_conversation(
        agent_id: str, limit: int | None = Query(None, ge=1, le=1000)
    ) -> list[dict]:
        """Conversation history in write order."""
        try:
            require(agent_id)
            entries = await app.storage.get_conversation(agent_id, limit=limit)
            return [entry_to_dict(e) for e in entries]
        except Exception as e:
            raise to_http(e)

    @router.delete("/conversations/{agent_id}", response_model=ClearResponse)
    async def clear_conversation(agent_id: str) -> dict:
        try:
            require(agent_id)
            deleted = await app.storage.clear_conversation(agent_id)
            return {"success": True, "deleted": deleted}
        except Exception as e:
            raise to_http(e)

    return router
