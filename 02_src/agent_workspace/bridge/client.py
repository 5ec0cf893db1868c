"""Reference bridge participant: polls the bridge API and answers queued items."""

import asyncio
from typing import Awaitable, Callable, Protocol

import httpx

from ..logging_config import get_logger

logger = get_logger(__name__)

SECRET_HEADER = "X-Bridge-Secret"

ResponseHandler = Callable[[dict], Awaitable[str]]


class IBridgeClient(Protocol):
    """An out-of-process participant on the bridge."""

    async def start(self) -> None:
        """Start the background poll loop."""
        ...

    async def stop(self) -> None:
        """Stop polling and release the HTTP client."""
        ...


class BridgeClient:
    """Polls ``/api/bridge/pending``, claims each item and posts the handler's reply."""

    def __init__(
        self,
        handler: ResponseHandler,
        api_url: str = "http://localhost:8000",
        secret: str = "",
        poll_interval: float = 2.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._handler = handler
        self._api_url = api_url
        self._secret = secret
        self._poll_interval = poll_interval
        self._client = client
        self._owns_client = client is None
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def _headers(self) -> dict[str, str]:
        return {SECRET_HEADER: self._secret} if self._secret else {}

    async def start(self) -> None:
        """Start the background poll loop."""
        if self._running:
            return

        self._running = True
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self._api_url, timeout=10.0)

        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop polling and release the HTTP client."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _run(self) -> None:
        while self._running:
            try:
                handled = await self.poll_once()
                if handled:
                    logger.info("Bridge client answered %s items", handled)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Bridge poll failed: %s", e, exc_info=True)

            await asyncio.sleep(self._poll_interval)

    async def poll_once(self) -> int:
        """Fetch pending items and answer each one. Returns how many were answered."""
        if not self._client:
            raise RuntimeError("BridgeClient not started")

        response = await self._client.get("/api/bridge/pending", headers=self._headers)
        response.raise_for_status()

        handled = 0
        for item in response.json():
            if await self._answer(item):
                handled += 1
        return handled

    async def _answer(self, item: dict) -> bool:
        item_id = item["id"]

        claim = await self._client.post(f"/api/bridge/{item_id}/claim", headers=self._headers)
        if claim.status_code == 409:
            logger.info("Bridge item %s already taken", item_id)
            return False
        claim.raise_for_status()

        try:
            reply = await self._handler(claim.json())
        except Exception as e:
            # Item stays in processing so it is not answered twice
            logger.error("Bridge handler failed for %s: %s", item_id, e, exc_info=True)
            return False

        result = await self._client.post(
            f"/api/bridge/{item_id}/respond",
            json={"response": reply},
            headers=self._headers,
        )
        result.raise_for_status()
        return True
