"""Tests for BridgeQueue."""

import asyncio

import pytest

from agent_workspace.errors import NotFound, TransitionError, ValidationError
from agent_workspace.models import BridgeDirection, BridgeStatus


class TestEnqueue:
    """Tests for enqueue and listing."""

    async def test_enqueue_creates_pending_item(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {"messages": [], "user": "local"})

        assert item.status is BridgeStatus.PENDING
        assert item.direction is BridgeDirection.TO_BRIDGE
        assert [i.id for i in await bridge_queue.list_pending()] == [item.id]

    async def test_list_pending_oldest_first(self, bridge_queue):
        first = await bridge_queue.enqueue("computer", {"n": 1})
        second = await bridge_queue.enqueue("computer", {"n": 2})

        assert [i.id for i in await bridge_queue.list_pending()] == [first.id, second.id]

    async def test_get_unknown_item(self, bridge_queue):
        with pytest.raises(NotFound):
            await bridge_queue.get("missing")


class TestParticipantTransitions:
    """Tests for claim and complete."""

    async def test_claim_then_complete(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})

        claimed = await bridge_queue.claim(item.id)
        assert claimed.status is BridgeStatus.PROCESSING
        assert await bridge_queue.list_pending() == []

        done = await bridge_queue.complete(item.id, "purr")
        assert done.status is BridgeStatus.COMPLETED
        assert done.response == "purr"

    async def test_complete_without_claim(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})
        done = await bridge_queue.complete(item.id, "meow")
        assert done.status is BridgeStatus.COMPLETED

    async def test_double_claim_conflicts(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})
        await bridge_queue.claim(item.id)

        with pytest.raises(TransitionError):
            await bridge_queue.claim(item.id)

    async def test_completed_item_is_final(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})
        await bridge_queue.complete(item.id, "first")

        with pytest.raises(TransitionError):
            await bridge_queue.complete(item.id, "second")
        assert (await bridge_queue.get(item.id)).response == "first"

    async def test_empty_response_is_rejected(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})

        with pytest.raises(ValidationError):
            await bridge_queue.complete(item.id, "   ")
        assert (await bridge_queue.get(item.id)).status is BridgeStatus.PENDING

    async def test_complete_unknown_item(self, bridge_queue):
        with pytest.raises(NotFound):
            await bridge_queue.complete("missing", "x")


class TestWaitForResponse:
    """Tests for the relay-side poll loop."""

    async def test_returns_completed_item(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})

        async def answer():
            await asyncio.sleep(0.03)
            await bridge_queue.complete(item.id, "done!")

        task = asyncio.create_task(answer())
        result = await bridge_queue.wait_for_response(item.id, timeout=1.0)
        await task

        assert result.response == "done!"

    async def test_already_completed_returns_immediately(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})
        await bridge_queue.complete(item.id, "early")

        result = await bridge_queue.wait_for_response(item.id, timeout=0)
        assert result.response == "early"

    async def test_timeout_returns_none_and_leaves_item(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})

        assert await bridge_queue.wait_for_response(item.id, timeout=0.05) is None
        assert (await bridge_queue.get(item.id)).status is BridgeStatus.PENDING

    async def test_should_stop_abandons_wait(self, bridge_queue):
        item = await bridge_queue.enqueue("computer", {})
        checks = []

        async def stop():
            checks.append(1)
            return len(checks) >= 2

        result = await bridge_queue.wait_for_response(item.id, should_stop=stop, timeout=5.0)

        assert result is None
        assert len(checks) == 2

    async def test_missing_item_raises(self, bridge_queue):
        with pytest.raises(NotFound):
            await bridge_queue.wait_for_response("missing", timeout=0.01)
