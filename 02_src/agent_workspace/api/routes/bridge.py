"""Routes used by the external bridge participant."""

from fastapi import APIRouter, Depends

from ...app import Application
from ..deps import bridge_secret_dependency
from ..errors import to_http
from ..schemas import BridgeItemResponse, BridgeRespondRequest, bridge_item_to_dict


def create_bridge_router(app: Application) -> APIRouter:
    """Create bridge router. Every route checks the shared secret."""
    router = APIRouter(
        prefix="/api/bridge",
        tags=["bridge"],
        dependencies=[Depends(bridge_secret_dependency(app))],
    )

    @router.get("/pending", response_model=list[BridgeItemResponse])
    async def list_pending() -> list[dict]:
        """Pending items, oldest first."""
        try:
            return [bridge_item_to_dict(i) for i in await app.bridge.list_pending()]
        except Exception as e:
            raise to_http(e)

    @router.get("/{item_id}", response_model=BridgeItemResponse)
    async def get_item(item_id: str) -> dict:
        try:
            return bridge_item_to_dict(await app.bridge.get(item_id))
        except Exception as e:
            raise to_http(e)

    @router.post("/{item_id}/claim", response_model=BridgeItemResponse)
    async def claim_item(item_id: str) -> dict:
        try:
            return bridge_item_to_dict(await app.bridge.claim(item_id))
        except Exception as e:
            raise to_http(e)

    @router.post("/{item_id}/respond", response_model=BridgeItemResponse)
    async def respond(item_id: str, body: BridgeRespondRequest) -> dict:
        try:
            return bridge_item_to_dict(await app.bridge.complete(item_id, body.response))
        except Exception as e:
            raise to_http(e)

    return router
