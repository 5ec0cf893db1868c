"""Streaming chat route."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse

from ...app import Application
from ...relay import sse_lines
from ..deps import caller_dependency
from ..errors import to_http
from ..schemas import ChatRequest

STREAM_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def create_chat_router(app: Application) -> APIRouter:
    """Create chat router."""
    router = APIRouter(prefix="/api", tags=["chat"])
    caller = caller_dependency(app)

    @router.post("/chat")
    async def chat(
        body: ChatRequest, request: Request, user_id: str = Depends(caller)
    ) -> StreamingResponse:
        """Relay a chat turn as ``text/event-stream``."""
        try:
            turn = await app.relay.prepare(
                body.agent_id,
                body.messages,
                user_id=user_id,
                session_id=body.session_id,
            )
            frames = app.relay.stream(turn, request.is_disconnected)

            # Provider failures before the first frame get a plain status code
            first = None
            if not turn.is_bridge:
                first = await anext(frames, None)
        except Exception as e:
            raise to_http(e)

        return StreamingResponse(
            sse_lines(frames, first),
            media_type="text/event-stream",
            headers=STREAM_HEADERS,
        )

    return router
