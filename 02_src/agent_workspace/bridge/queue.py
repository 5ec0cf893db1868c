"""BridgeQueue: work items for the external bridge participant."""

import asyncio
from typing import Awaitable, Callable

from ..errors import NotFound, TransitionError, ValidationError
from ..logging_config import get_logger
from ..models import BridgeDirection, BridgeItem, BridgeStatus, new_id, utcnow
from ..storage import IStorage

logger = get_logger(__name__)

StopCheck = Callable[[], Awaitable[bool]]


class BridgeQueue:
    """Store-backed rendezvous between the relay and an out-of-process participant.

    The relay enqueues and polls; the participant lists, claims and completes.
    Storage is the only shared state, so the poll loop can be swapped for a
    push wakeup without changing either side.
    """

    def __init__(
        self,
        storage: IStorage,
        poll_interval: float = 0.5,
        timeout: float = 120.0,
    ):
        self._storage = storage
        self._poll_interval = poll_interval
        self._timeout = timeout

    async def enqueue(self, agent_id: str, payload: dict) -> BridgeItem:
        """Create a pending ``to_bridge`` item."""
        now = utcnow()
        item = await self._storage.save_bridge_item(
            BridgeItem(
                id=new_id(),
                agent_id=agent_id,
                payload=payload,
                direction=BridgeDirection.TO_BRIDGE,
                status=BridgeStatus.PENDING,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info(
            "Queued bridge item %s for %s",
            item.id,
            agent_id,
            extra={"item_id": item.id},
        )
        return item

    async def wait_for_response(
        self,
        item_id: str,
        should_stop: StopCheck | None = None,
        timeout: float | None = None,
    ) -> BridgeItem | None:
        """Poll until the item is completed.

        Checks at least once and once more at the deadline. Returns ``None``
        on timeout or when ``should_stop`` reports true; the item itself is
        never modified here.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + (self._timeout if timeout is None else timeout)

        while True:
            item = await self._storage.get_bridge_item(item_id)
            if item is None:
                raise NotFound(f"Bridge item not found: {item_id}")
            if item.status is BridgeStatus.COMPLETED and item.response:
                return item

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.info(
                    "Bridge item %s timed out", item_id, extra={"item_id": item_id}
                )
                return None
            if should_stop is not None and await should_stop():
                logger.info(
                    "Stopped waiting for bridge item %s",
                    item_id,
                    extra={"item_id": item_id},
                )
                return None

            await asyncio.sleep(min(self._poll_interval, remaining))

    async def list_pending(self) -> list[BridgeItem]:
        """Pending ``to_bridge`` items, oldest first."""
        return await self._storage.get_bridge_items(
            status=BridgeStatus.PENDING,
            direction=BridgeDirection.TO_BRIDGE,
        )

    async def get(self, item_id: str) -> BridgeItem:
        """Get an item or raise NotFound."""
        item = await self._storage.get_bridge_item(item_id)
        if item is None:
            raise NotFound(f"Bridge item not found: {item_id}")
        return item

    async def claim(self, item_id: str) -> BridgeItem:
        """Mark a pending item as being processed by the participant."""
        item = await self.get(item_id)
        applied = await self._storage.transition_bridge_item(
            item_id, [BridgeStatus.PENDING], BridgeStatus.PROCESSING
        )
        if not applied:
            raise TransitionError(
                f"Bridge item {item_id} is {item.status.value}, not pending",
                current=item.status.value,
                requested=BridgeStatus.PROCESSING.value,
            )
        return await self.get(item_id)

    async def complete(self, item_id: str, response: str) -> BridgeItem:
        """Store the participant's response and mark the item completed."""
        if not isinstance(response, str) or not response.strip():
            raise ValidationError("response is required")

        item = await self.get(item_id)
        applied = await self._storage.transition_bridge_item(
            item_id,
            [BridgeStatus.PENDING, BridgeStatus.PROCESSING],
            BridgeStatus.COMPLETED,
            response,
        )
        if not applied:
            raise TransitionError(
                f"Bridge item {item_id} is already {item.status.value}",
                current=item.status.value,
                requested=BridgeStatus.COMPLETED.value,
            )

        logger.info("Bridge item %s completed", item_id, extra={"item_id": item_id})
        return await self.get(item_id)
