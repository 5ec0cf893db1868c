"""Tests for BridgeClient against a mocked bridge API."""

import asyncio
import json

import httpx
import pytest

from agent_workspace.bridge import BridgeClient
from agent_workspace.bridge.client import SECRET_HEADER


class FakeBridgeApi:
    """In-memory stand-in for the bridge routes."""

    def __init__(self, items: list[dict], conflict: set[str] | None = None):
        self.items = {i["id"]: dict(i) for i in items}
        self.conflict = conflict or set()
        self.responses: dict[str, str] = {}
        self.secrets: list[str | None] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.secrets.append(request.headers.get(SECRET_HEADER))
        parts = request.url.path.strip("/").split("/")

        if request.method == "GET" and parts == ["api", "bridge", "pending"]:
            pending = [i for i in self.items.values() if i["status"] == "pending"]
            return httpx.Response(200, json=pending)

        item_id, action = parts[2], parts[3]
        if action == "claim":
            if item_id in self.conflict:
                return httpx.Response(409, json={"detail": "taken"})
            self.items[item_id]["status"] = "processing"
            return httpx.Response(200, json=self.items[item_id])
        if action == "respond":
            self.responses[item_id] = json.loads(request.content)["response"]
            self.items[item_id]["status"] = "completed"
            return httpx.Response(200, json=self.items[item_id])
        return httpx.Response(404)


def make_client(api: FakeBridgeApi, handler, secret="s3cret") -> BridgeClient:
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(api), base_url="http://bridge.test"
    )
    return BridgeClient(handler, secret=secret, client=http)


def item(item_id: str, text: str = "hello") -> dict:
    return {
        "id": item_id,
        "agentId": "computer",
        "payload": {"messages": [{"role": "user", "content": text}]},
        "status": "pending",
    }


class TestBridgeClient:
    """Tests for BridgeClient.poll_once()."""

    async def test_answers_each_pending_item(self):
        api = FakeBridgeApi([item("a", "one"), item("b", "two")])

        async def handler(claimed: dict) -> str:
            return "echo: " + claimed["payload"]["messages"][-1]["content"]

        client = make_client(api, handler)
        assert await client.poll_once() == 2
        assert api.responses == {"a": "echo: one", "b": "echo: two"}
        assert set(api.secrets) == {"s3cret"}

    async def test_conflicting_claim_is_skipped(self):
        api = FakeBridgeApi([item("a"), item("b")], conflict={"a"})

        async def handler(claimed: dict) -> str:
            return "ok"

        client = make_client(api, handler)
        assert await client.poll_once() == 1
        assert set(api.responses) == {"b"}

    async def test_handler_failure_leaves_item_claimed(self):
        api = FakeBridgeApi([item("a")])

        async def handler(claimed: dict) -> str:
            raise RuntimeError("model offline")

        client = make_client(api, handler)
        assert await client.poll_once() == 0
        assert api.items["a"]["status"] == "processing"
        assert api.responses == {}

    async def test_no_secret_sends_no_header(self):
        api = FakeBridgeApi([])

        async def handler(claimed: dict) -> str:
            return "unused"

        client = make_client(api, handler, secret="")
        assert await client.poll_once() == 0
        assert api.secrets == [None]

    async def test_poll_before_start_raises(self):
        async def handler(claimed: dict) -> str:
            return "unused"

        with pytest.raises(RuntimeError):
            await BridgeClient(handler).poll_once()

    async def test_start_and_stop(self):
        api = FakeBridgeApi([item("a")])

        async def handler(claimed: dict) -> str:
            return "meow"

        client = make_client(api, handler)
        client._poll_interval = 0.01
        await client.start()
        for _ in range(100):
            if api.responses:
                break
            await asyncio.sleep(0.01)
        await client.stop()

        assert api.responses == {"a": "meow"}
