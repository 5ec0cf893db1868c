"""Inter-agent messaging, handoff and overview routes."""

from fastapi import APIRouter, Query

from ...app import Application
from ...bus import build_overview
from ...errors import NotFound
from ..errors import to_http
from ..schemas import (
    HandoffCreateRequest,
    HandoffEnvelope,
    HandoffResponse,
    HandoffUpdateRequest,
    MessageResponse,
    SendRequest,
    SendResponse,
    handoff_to_dict,
    message_to_dict,
)


def create_bus_router(app: Application) -> APIRouter:
    """Create bus router."""
    router = APIRouter(prefix="/api", tags=["bus"])

    @router.post("/agents/{from_id}/send", response_model=SendResponse)
    async def send_message(from_id: str, body: SendRequest) -> dict:
        try:
            message = await app.bus.send(from_id, body.to_agent, body.content, body.type)
            return {"success": True, "message": message_to_dict(message)}
        except Exception as e:
            raise to_http(e)

    @router.get("/agents/{agent_id}/inbox", response_model=list[MessageResponse])
    async def get_inbox(
        agent_id: str, limit: int = Query(100, ge=1, le=1000)
    ) -> list[dict]:
        """Messages addressed to the agent or broadcast. Read state is untouched."""
        try:
            if app.directory.get(agent_id) is None:
                raise NotFound(f"Agent not found: {agent_id}")
            messages = await app.bus.get_messages_for(agent_id, limit=limit)
            return [message_to_dict(m) for m in messages]
        except Exception as e:
            raise to_http(e)

    @router.post("/handoffs", response_model=HandoffEnvelope)
    async def create_handoff(body: HandoffCreateRequest) -> dict:
        try:
            handoff = await app.bus.create_handoff(
                body.from_agent, body.to_agent, body.task, body.context
            )
            return {"success": True, "handoff": handoff_to_dict(handoff)}
        except Exception as e:
            raise to_http(e)

    @router.patch("/handoffs/{handoff_id}", response_model=HandoffEnvelope)
    async def update_handoff(handoff_id: str, body: HandoffUpdateRequest) -> dict:
        try:
            handoff = await app.bus.update_handoff(handoff_id, body.status, body.result)
            return {"success": True, "handoff": handoff_to_dict(handoff)}
        except Exception as e:
            raise to_http(e)

    @router.get("/handoffs", response_model=list[HandoffResponse])
    async def list_handoffs(
        include_all: bool = Query(
            False, alias="all", description="Include accepted and terminal handoffs"
        ),
        limit: int = Query(50, ge=1, le=1000),
    ) -> list[dict]:
        try:
            if include_all:
                handoffs = await app.bus.get_all_handoffs(limit=limit)
            else:
                handoffs = await app.bus.get_pending_handoffs()
            return [handoff_to_dict(h) for h in handoffs]
        except Exception as e:
            raise to_http(e)

    @router.get("/activity", response_model=list[MessageResponse])
    async def get_activity(limit: int = Query(50, ge=1, le=1000)) -> list[dict]:
        """Every inter-agent message, newest first."""
        try:
            return [message_to_dict(m) for m in await app.bus.get_all_activity(limit=limit)]
        except Exception as e:
            raise to_http(e)

    @router.get("/overview")
    async def get_overview() -> dict:
        try:
            return await build_overview(
                app.storage, app.directory, app.bus, app.settings.overview_agent_id
            )
        except Exception as e:
            raise to_http(e)

    return router
