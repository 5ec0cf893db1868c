"""AgentBus: inter-agent messages and handoffs, persisted through Storage."""

from typing import Protocol

from ..config import BROADCAST
from ..directory import IAgentDirectory
from ..errors import NotFound, TransitionError, ValidationError
from ..logging_config import get_logger
from ..models import (
    HANDOFF_TRANSITIONS,
    Handoff,
    HandoffStatus,
    Message,
    MessageType,
    new_id,
    utcnow,
)
from ..storage import IStorage

logger = get_logger(__name__)

MAX_CONTENT_LENGTH = 10_000

HANDOFF_PREFIX = "HANDOFF: "

# Leaves room for the prefix in the mirrored activity message
MAX_TASK_LENGTH = MAX_CONTENT_LENGTH - len(HANDOFF_PREFIX)


class IAgentBus(Protocol):
    """Durable send/broadcast, handoff lifecycle, inbox and activity views."""

    async def send(
        self,
        from_agent: str,
        to_agent: str,
        content: str,
        type: MessageType = MessageType.MESSAGE,
        origin_key: str | None = None,
    ) -> Message:
        """Persist and return a message. ``to_agent`` may be the broadcast sentinel."""
        ...

    async def create_handoff(
        self,
        from_agent: str,
        to_agent: str,
        task: str,
        context: dict | None = None,
        origin_key: str | None = None,
    ) -> Handoff:
        """Persist a pending handoff and its activity-log message."""
        ...

    async def update_handoff(
        self, handoff_id: str, status: HandoffStatus, result: str | None = None
    ) -> Handoff:
        """Apply a legal transition."""
        ...

    async def get_unread_for(self, agent_id: str) -> list[Message]:
        """Unread inbox, oldest first. Marks everything returned as read."""
        ...

    async def get_messages_for(self, agent_id: str, limit: int = 100) -> list[Message]:
        """Inbox listing without changing read state, newest first."""
        ...

    async def get_all_activity(self, limit: int = 50) -> list[Message]:
        """All inter-agent messages, newest first."""
        ...

    async def get_pending_handoffs(self) -> list[Handoff]:
        """Handoffs still waiting to be accepted or rejected."""
        ...

    async def get_all_handoffs(self, limit: int = 50) -> list[Handoff]:
        """All handoffs, newest first."""
        ...


class AgentBus:
    """Façade over Storage; holds no state of its own."""

    def __init__(self, storage: IStorage, directory: IAgentDirectory):
        self._storage = storage
        self._directory = directory

    def _require_agent(self, agent_id: str, role: str) -> None:
        if not agent_id or not isinstance(agent_id, str):
            raise ValidationError(f"{role} agent is required")
        if self._directory.get(agent_id) is None:
            raise NotFound(f"{role.capitalize()} agent not found: {agent_id}")

    @staticmethod
    def _require_text(value: str, field: str, limit: int = MAX_CONTENT_LENGTH) -> None:
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"{field} is required and must be a non-empty string")
        if len(value) > limit:
            raise ValidationError(f"{field} exceeds maximum length ({limit})")

    async def send(
        self,
        from_agent: str,
        to_agent: str,
        content: str,
        type: MessageType = MessageType.MESSAGE,
        origin_key: str | None = None,
    ) -> Message:
        """Persist and return a message. ``to_agent`` may be the broadcast sentinel."""
        self._require_agent(from_agent, "source")
        if to_agent != BROADCAST:
            self._require_agent(to_agent, "target")
        self._require_text(content, "content")
        try:
            msg_type = MessageType(type)
        except ValueError:
            raise ValidationError(f"Unknown message type: {type}") from None

        message = await self._storage.save_message(
            Message(
                id=new_id(),
                from_agent=from_agent,
                to_agent=to_agent,
                content=content,
                type=msg_type,
                timestamp=utcnow(),
                origin_key=origin_key,
            )
        )
        logger.info(
            "Message %s: %s -> %s (%s)",
            message.id,
            from_agent,
            to_agent,
            msg_type.value,
        )
        return message

    async def create_handoff(
        self,
        from_agent: str,
        to_agent: str,
        task: str,
        context: dict | None = None,
        origin_key: str | None = None,
    ) -> Handoff:
        """Persist a pending handoff and its activity-log message.

        The two writes are not atomic. The handoff record is canonical; the
        ``handoff``-typed message only mirrors it in the activity feed.
        """
        self._require_agent(from_agent, "source")
        self._require_agent(to_agent, "target")
        self._require_text(task, "task", MAX_TASK_LENGTH)
        if context is not None and not isinstance(context, dict):
            raise ValidationError("context must be an object")

        now = utcnow()
        handoff = await self._storage.save_handoff(
            Handoff(
                id=new_id(),
                from_agent=from_agent,
                to_agent=to_agent,
                task=task,
                context=context or {},
                created_at=now,
                updated_at=now,
                origin_key=origin_key,
            )
        )

        await self.send(
            from_agent,
            to_agent,
            f"{HANDOFF_PREFIX}{task}",
            MessageType.HANDOFF,
            origin_key=f"{origin_key}:mirror" if origin_key else None,
        )
        logger.info(
            "Handoff %s created: %s -> %s",
            handoff.id,
            from_agent,
            to_agent,
            extra={"handoff_id": handoff.id},
        )
        return handoff

    async def update_handoff(
        self, handoff_id: str, status: HandoffStatus, result: str | None = None
    ) -> Handoff:
        """Apply a legal transition.

        Raises:
            NotFound: unknown handoff id.
            TransitionError: the transition is not allowed from the current
                status, including any transition out of a terminal status.
        """
        try:
            target = HandoffStatus(status)
        except ValueError:
            raise ValidationError(
                "status must be one of: "
                + ", ".join(s.value for s in HandoffStatus)
            ) from None

        current = await self._storage.get_handoff(handoff_id)
        if current is None:
            raise NotFound(f"Handoff not found: {handoff_id}")

        if target not in HANDOFF_TRANSITIONS[current.status]:
            raise TransitionError(
                f"Cannot move handoff {handoff_id} from {current.status.value} to {target.value}",
                current=current.status.value,
                requested=target.value,
            )

        # Compare-and-set: a concurrent writer may have moved it since the read
        applied = await self._storage.transition_handoff(
            handoff_id, [current.status], target, result
        )
        updated = await self._storage.get_handoff(handoff_id)
        if not applied:
            raise TransitionError(
                f"Handoff {handoff_id} changed concurrently to {updated.status.value}",
                current=updated.status.value,
                requested=target.value,
            )

        logger.info(
            "Handoff %s: %s -> %s",
            handoff_id,
            current.status.value,
            target.value,
            extra={"handoff_id": handoff_id},
        )
        return updated

    async def get_unread_for(self, agent_id: str) -> list[Message]:
        """Unread inbox, oldest first. Marks everything returned as read."""
        unread = await self._storage.get_unread_messages(agent_id)
        if unread:
            await self._storage.mark_messages_read([m.id for m in unread], agent_id)
        return unread

    async def get_messages_for(self, agent_id: str, limit: int = 100) -> list[Message]:
        """Inbox listing without changing read state, newest first."""
        return await self._storage.get_messages_for(agent_id, limit=limit)

    async def get_all_activity(self, limit: int = 50) -> list[Message]:
        """All inter-agent messages, newest first."""
        return await self._storage.get_recent_messages(limit=limit)

    async def get_pending_handoffs(self) -> list[Handoff]:
        """Handoffs still waiting to be accepted or rejected."""
        return await self._storage.get_handoffs(status=HandoffStatus.PENDING)

    async def get_all_handoffs(self, limit: int = 50) -> list[Handoff]:
        """All handoffs, newest first."""
        return await self._storage.get_handoffs(limit=limit, newest_first=True)
