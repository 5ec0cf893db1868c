"""ChatRelay: bridges a client chat request to a provider or the bridge queue."""

import asyncio
import re
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Awaitable, Callable, Protocol

from ..bridge import BridgeQueue
from ..bus import CommandExtractor, IAgentBus
from ..config import RelaySettings
from ..directory import IAgentDirectory, apply_settings
from ..errors import NotFound, UpstreamError, ValidationError
from ..llm import FrameDecoder, ILLMProvider, StreamEvent
from ..logging_config import get_logger
from ..models import ROLES, AgentConfig, ConversationEntry, utcnow
from ..storage import IStorage
from .context import build_system_prompt

logger = get_logger(__name__)

BRIDGE_PROVIDER = "bridge"

IsDisconnected = Callable[[], Awaitable[bool]]

_REPLAY_TOKEN = re.compile(r"\S+\s*|\s+")


async def _connected() -> bool:
    return False


@dataclass
class ChatTurn:
    """A validated chat request whose user turn is already persisted."""

    agent: AgentConfig
    messages: list[dict]
    user_id: str | None
    user_entry: ConversationEntry
    provider: ILLMProvider | None = None  # None routes to the bridge
    session_id: str | None = None

    @property
    def is_bridge(self) -> bool:
        return self.provider is None


class IChatRelay(Protocol):
    """Per-request chat streaming."""

    async def prepare(
        self,
        agent_id: str,
        messages: list[dict],
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> ChatTurn:
        """Validate, resolve the agent and persist the user turn."""
        ...

    def stream(
        self, turn: ChatTurn, is_disconnected: IsDisconnected | None = None
    ) -> AsyncIterator[dict]:
        """Yield ``{"content"}`` frames and one terminal ``{"done"}`` or ``{"error"}``."""
        ...


def validate_messages(messages) -> list[dict]:
    """Check the client's turn list and return normalized copies."""
    if not isinstance(messages, list) or not messages:
        raise ValidationError("messages must be a non-empty array")

    turns = []
    for msg in messages:
        if not isinstance(msg, dict) or msg.get("role") not in ROLES:
            raise ValidationError("Each message must have a valid role")
        if not isinstance(msg.get("content"), str):
            raise ValidationError("Each message must have string content")
        turns.append({"role": msg["role"], "content": msg["content"]})

    if not any(t["role"] == "user" for t in turns):
        raise ValidationError("messages must include a user turn")
    return turns


def replay_tokens(text: str) -> list[str]:
    """Split a complete reply into whitespace-delimited stream chunks."""
    return _REPLAY_TOKEN.findall(text)


class ChatRelay:
    """Runs one chat turn: Validating -> (Bridge | Provider) -> Streaming -> Finalizing."""

    def __init__(
        self,
        storage: IStorage,
        directory: IAgentDirectory,
        bus: IAgentBus,
        extractor: CommandExtractor,
        bridge: BridgeQueue,
        providers: dict[str, ILLMProvider],
        settings: RelaySettings | None = None,
    ):
        self._storage = storage
        self._directory = directory
        self._bus = bus
        self._extractor = extractor
        self._bridge = bridge
        self._providers = providers
        self._settings = settings or RelaySettings()

    async def prepare(
        self,
        agent_id: str,
        messages: list[dict],
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> ChatTurn:
        """Validate, resolve the agent and persist the user turn.

        Raises ValidationError or NotFound without writing anything.
        """
        if not agent_id or not isinstance(agent_id, str):
            raise ValidationError("agentId is required and must be a string")
        turns = validate_messages(messages)

        agent = self._directory.get(agent_id)
        if agent is None:
            raise NotFound(f"Agent not found: {agent_id}")
        if user_id:
            agent = apply_settings(
                agent, await self._storage.get_agent_settings(user_id, agent_id)
            )

        provider = None
        if agent.provider != BRIDGE_PROVIDER:
            provider = self._providers.get(agent.provider)
            if provider is None:
                raise ValidationError(f"Provider not configured: {agent.provider}")

        # Durable before any network call
        last_user = next(t for t in reversed(turns) if t["role"] == "user")
        entry = await self._storage.add_conversation_entry(
            ConversationEntry(
                agent_id=agent.id,
                role="user",
                content=last_user["content"],
                timestamp=utcnow(),
                session_id=session_id,
            )
        )

        return ChatTurn(
            agent=agent,
            messages=turns,
            user_id=user_id,
            user_entry=entry,
            provider=provider,
            session_id=session_id,
        )

    def stream(
        self, turn: ChatTurn, is_disconnected: IsDisconnected | None = None
    ) -> AsyncIterator[dict]:
        """Yield ``{"content"}`` frames and one terminal ``{"done"}`` or ``{"error"}``.

        An UpstreamError raised before the first frame propagates to the
        caller so it can answer with a plain error response.
        """
        check = is_disconnected or _connected
        if turn.is_bridge:
            return self._bridge_stream(turn, check)
        return self._provider_stream(turn, check)

    async def _provider_stream(
        self, turn: ChatTurn, is_disconnected: IsDisconnected
    ) -> AsyncIterator[dict]:
        agent = turn.agent
        provider = turn.provider
        system = await build_system_prompt(
            agent,
            self._storage,
            self._directory,
            self._bus,
            self._settings.overview_agent_id,
        )

        parts: list[str] = []
        emitted = False
        finished = False
        stop_reason = "upstream_error"

        try:
            upstream = provider.stream(agent, turn.messages, system)
            async with aclosing(self._decode(upstream)) as events:
                async for event in events:
                    if await is_disconnected():
                        stop_reason = "client_disconnected"
                        logger.info(
                            "Client disconnected from %s stream",
                            agent.id,
                            extra={"agent_id": agent.id},
                        )
                        break
                    if event.kind == "error":
                        raise UpstreamError(event.text, provider=provider.name)
                    if event.kind == "end":
                        finished = True
                        break

                    parts.append(event.text)
                    emitted = True
                    yield {"content": event.text}

            if finished:
                await asyncio.shield(self._finalize(turn, "".join(parts)))
                yield {"done": True}
            elif stop_reason != "client_disconnected":
                raise UpstreamError(
                    "Upstream stream ended without a terminator", provider=provider.name
                )

        except (asyncio.CancelledError, GeneratorExit):
            stop_reason = "client_disconnected"
            raise

        except UpstreamError as e:
            logger.error(
                "Upstream failure for %s: %s",
                agent.id,
                e,
                extra={"agent_id": agent.id, "provider": provider.name},
            )
            if not emitted:
                raise
            yield {"error": e.message}

        except Exception as e:
            logger.error(
                "Chat stream failed for %s: %s",
                agent.id,
                e,
                exc_info=True,
                extra={"agent_id": agent.id},
            )
            if not emitted:
                raise
            yield {"error": "Internal error while streaming the response"}

        finally:
            if not finished and parts:
                await asyncio.shield(
                    self._save_reply(
                        turn, "".join(parts), {"partial": True, "reason": stop_reason}
                    )
                )

    @staticmethod
    async def _decode(chunks: AsyncIterator[bytes]) -> AsyncIterator[StreamEvent]:
        decoder = FrameDecoder()
        async with aclosing(chunks) as stream:
            async for chunk in stream:
                for event in decoder.feed(chunk):
                    yield event
        for event in decoder.finish():
            yield event

    async def _bridge_stream(
        self, turn: ChatTurn, is_disconnected: IsDisconnected
    ) -> AsyncIterator[dict]:
        agent = turn.agent
        item = await self._bridge.enqueue(
            agent.id,
            {
                "messages": turn.messages,
                "user": turn.user_id,
                "timestamp": utcnow().isoformat(),
            },
        )

        completed = await self._bridge.wait_for_response(item.id, should_stop=is_disconnected)
        if completed is None:
            if await is_disconnected():
                return
            # Not an error: the item stays queued for a later reply
            yield {
                "content": (
                    f"{agent.name} has not replied yet. The request is still queued; "
                    "check back later for the response."
                )
            }
            yield {"done": True}
            return

        await asyncio.shield(self._finalize(turn, completed.response))

        for token in replay_tokens(completed.response):
            if await is_disconnected():
                return
            yield {"content": token}
            if self._settings.bridge_replay_delay > 0:
                await asyncio.sleep(self._settings.bridge_replay_delay)
        yield {"done": True}

    async def _save_reply(
        self, turn: ChatTurn, text: str, metadata: dict | None = None
    ) -> ConversationEntry:
        return await self._storage.add_conversation_entry(
            ConversationEntry(
                agent_id=turn.agent.id,
                role="assistant",
                content=text,
                timestamp=utcnow(),
                session_id=turn.session_id,
                metadata=metadata,
            )
        )

    async def _finalize(self, turn: ChatTurn, text: str) -> None:
        """Persist the complete reply, then apply its directives."""
        await self._save_reply(turn, text)
        try:
            await self._extractor.process(turn.agent.id, text)
        except Exception as e:
            logger.error(
                "Directive processing failed for %s: %s",
                turn.agent.id,
                e,
                exc_info=True,
                extra={"agent_id": turn.agent.id},
            )
