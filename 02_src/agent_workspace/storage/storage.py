"""SQLite storage implementation."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Protocol

import aiosqlite

from ..config import BROADCAST, resolve_db_path
from ..models import (
    AgentSettings,
    BridgeDirection,
    BridgeItem,
    BridgeStatus,
    ConversationEntry,
    Handoff,
    HandoffStatus,
    Message,
    MessageType,
    new_id,
    utcnow,
)


class IStorage(Protocol):
    """Persistent storage for conversations, bus traffic and bridge items."""

    async def init(self) -> None:
        """Initialize database and create tables."""
        ...

    async def close(self) -> None:
        """Close database connection."""
        ...

    # Conversations
    async def add_conversation_entry(self, entry: ConversationEntry) -> ConversationEntry:
        """Append a turn; returns it with its id assigned."""
        ...

    async def get_conversation(
        self, agent_id: str, limit: int | None = None
    ) -> list[ConversationEntry]:
        """Entries for an agent, oldest first (the most recent ``limit`` if given)."""
        ...

    async def clear_conversation(self, agent_id: str) -> int:
        """Delete every entry for an agent. Returns the number deleted."""
        ...

    # Messages
    async def save_message(self, message: Message) -> Message:
        """Insert a message. A repeated ``origin_key`` returns the stored message."""
        ...

    async def get_message(self, message_id: str) -> Message | None:
        """Get a message by id."""
        ...

    async def get_messages_for(self, agent_id: str, limit: int = 100) -> list[Message]:
        """Messages addressed to an agent or broadcast, newest first."""
        ...

    async def get_unread_messages(self, agent_id: str) -> list[Message]:
        """Unread messages for an agent (direct or broadcast), oldest first."""
        ...

    async def mark_messages_read(self, message_ids: Iterable[str], agent_id: str) -> None:
        """Mark messages read for one reader."""
        ...

    async def get_recent_messages(self, limit: int = 50) -> list[Message]:
        """All messages, newest first."""
        ...

    # Handoffs
    async def save_handoff(self, handoff: Handoff) -> Handoff:
        """Insert a handoff. A repeated ``origin_key`` returns the stored handoff."""
        ...

    async def get_handoff(self, handoff_id: str) -> Handoff | None:
        """Get a handoff by id."""
        ...

    async def get_handoffs(
        self,
        status: HandoffStatus | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Handoff]:
        """List handoffs, optionally filtered by status."""
        ...

    async def transition_handoff(
        self,
        handoff_id: str,
        expected: Iterable[HandoffStatus],
        status: HandoffStatus,
        result: str | None = None,
    ) -> bool:
        """Set status if the current status is one of ``expected``."""
        ...

    # Bridge items
    async def save_bridge_item(self, item: BridgeItem) -> BridgeItem:
        """Insert a bridge item."""
        ...

    async def get_bridge_item(self, item_id: str) -> BridgeItem | None:
        """Get a bridge item by id."""
        ...

    async def get_bridge_items(
        self,
        status: BridgeStatus | None = None,
        direction: BridgeDirection | None = None,
    ) -> list[BridgeItem]:
        """List bridge items, oldest first."""
        ...

    async def transition_bridge_item(
        self,
        item_id: str,
        expected: Iterable[BridgeStatus],
        status: BridgeStatus,
        response: str | None = None,
    ) -> bool:
        """Set status if the current status is one of ``expected``."""
        ...

    # Per-user agent settings
    async def save_agent_settings(self, settings: AgentSettings) -> None:
        """Save overrides for (user, agent)."""
        ...

    async def get_agent_settings(self, user_id: str, agent_id: str) -> AgentSettings | None:
        """Get overrides for (user, agent)."""
        ...


def _ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse_ts(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _placeholders(values: list) -> str:
    return ",".join("?" * len(values))


def _row_to_entry(row: aiosqlite.Row) -> ConversationEntry:
    return ConversationEntry(
        id=row["id"],
        agent_id=row["agent_id"],
        role=row["role"],
        content=row["content"],
        timestamp=_parse_ts(row["timestamp"]),
        session_id=row["session_id"],
        metadata=json.loads(row["metadata"]) if row["metadata"] else None,
    )


def _row_to_message(row: aiosqlite.Row) -> Message:
    return Message(
        id=row["id"],
        from_agent=row["from_agent"],
        to_agent=row["to_agent"],
        content=row["content"],
        type=MessageType(row["type"]),
        read=bool(row["read"]),
        timestamp=_parse_ts(row["timestamp"]),
        origin_key=row["origin_key"],
    )


def _row_to_handoff(row: aiosqlite.Row) -> Handoff:
    return Handoff(
        id=row["id"],
        from_agent=row["from_agent"],
        to_agent=row["to_agent"],
        task=row["task"],
        context=json.loads(row["context"]) if row["context"] else {},
        status=HandoffStatus(row["status"]),
        result=row["result"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
        origin_key=row["origin_key"],
    )


def _row_to_bridge_item(row: aiosqlite.Row) -> BridgeItem:
    return BridgeItem(
        id=row["id"],
        direction=BridgeDirection(row["direction"]),
        agent_id=row["agent_id"],
        payload=json.loads(row["payload"]),
        status=BridgeStatus(row["status"]),
        response=row["response"],
        created_at=_parse_ts(row["created_at"]),
        updated_at=_parse_ts(row["updated_at"]),
    )


class Storage:
    """SQLite storage implementation."""

    def __init__(self, db_path: str | Path | None = None):
        self._db_path = resolve_db_path(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def init(self) -> None:
        """Initialize database and create tables."""
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row

        if str(self._db_path) != ":memory:":
            await self._conn.execute("PRAGMA journal_mode=WAL")

        schema_path = Path(__file__).parent / "schema.sql"
        with open(schema_path, "r", encoding="utf-8") as f:
            schema_sql = f.read()
        await self._conn.executescript(schema_sql)
        await self._conn.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._conn:
            await self._conn.close()
            self._conn = None

    def _db(self) -> aiosqlite.Connection:
        if not self._conn:
            raise RuntimeError("Storage not initialized")
        return self._conn

    # Conversations
    async def add_conversation_entry(self, entry: ConversationEntry) -> ConversationEntry:
        """Append a turn; returns it with its id assigned."""
        conn = self._db()

        cursor = await conn.execute(
            """
            INSERT INTO conversations (agent_id, role, content, timestamp, session_id, metadata)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.agent_id,
                entry.role,
                entry.content,
                _ts(entry.timestamp),
                entry.session_id,
                json.dumps(entry.metadata) if entry.metadata is not None else None,
            ),
        )
        await conn.commit()
        entry.id = cursor.lastrowid
        return entry

    async def get_conversation(
        self, agent_id: str, limit: int | None = None
    ) -> list[ConversationEntry]:
        """Entries for an agent, oldest first (the most recent ``limit`` if given)."""
        conn = self._db()

        if limit is None:
            cursor = await conn.execute(
                """
                SELECT * FROM conversations
                WHERE agent_id = ?
                ORDER BY timestamp ASC, id ASC
                """,
                (agent_id,),
            )
            rows = await cursor.fetchall()
        else:
            cursor = await conn.execute(
                """
                SELECT * FROM conversations
                WHERE agent_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (agent_id, limit),
            )
            rows = list(reversed(await cursor.fetchall()))

        return [_row_to_entry(row) for row in rows]

    async def clear_conversation(self, agent_id: str) -> int:
        """Delete every entry for an agent. Returns the number deleted."""
        conn = self._db()

        cursor = await conn.execute(
            "DELETE FROM conversations WHERE agent_id = ?", (agent_id,)
        )
        await conn.commit()
        return cursor.rowcount

    # Messages
    async def save_message(self, message: Message) -> Message:
        """Insert a message. A repeated ``origin_key`` returns the stored message."""
        conn = self._db()

        message.id = message.id or new_id()
        cursor = await conn.execute(
            """
            INSERT OR IGNORE INTO messages
            (id, from_agent, to_agent, content, type, read, timestamp, origin_key)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                message.id,
                message.from_agent,
                message.to_agent,
                message.content,
                message.type.value,
                int(message.read),
                _ts(message.timestamp),
                message.origin_key,
            ),
        )
        await conn.commit()

        if cursor.rowcount == 0:
            existing = await self._get_message_by_origin(message.origin_key)
            if existing is None:
                raise RuntimeError(f"Message {message.id} was not stored")
            return existing
        return message

    async def _get_message_by_origin(self, origin_key: str | None) -> Message | None:
        if origin_key is None:
            return None
        cursor = await self._db().execute(
            "SELECT * FROM messages WHERE origin_key = ?", (origin_key,)
        )
        row = await cursor.fetchone()
        return _row_to_message(row) if row else None

    async def get_message(self, message_id: str) -> Message | None:
        """Get a message by id."""
        cursor = await self._db().execute(
            "SELECT * FROM messages WHERE id = ?", (message_id,)
        )
        row = await cursor.fetchone()
        return _row_to_message(row) if row else None

    async def get_messages_for(self, agent_id: str, limit: int = 100) -> list[Message]:
        """Messages addressed to an agent or broadcast, newest first."""
        cursor = await self._db().execute(
            """
            SELECT * FROM messages
            WHERE to_agent = ? OR to_agent = ?
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
            """,
            (agent_id, BROADCAST, limit),
        )
        rows = await cursor.fetchall()
        return [_row_to_message(row) for row in rows]

    async def get_unread_messages(self, agent_id: str) -> list[Message]:
        """Unread messages for an agent (direct or broadcast), oldest first."""
        cursor = await self._db().execute(
            """
            SELECT m.* FROM messages m
            WHERE (m.to_agent = ? AND m.read = 0)
               OR (
                    m.to_agent = ?
                    AND NOT EXISTS (
                        SELECT 1 FROM message_reads r
                        WHERE r.message_id = m.id AND r.agent_id = ?
                    )
               )
            ORDER BY m.timestamp ASC, m.rowid ASC
            """,
            (agent_id, BROADCAST, agent_id),
        )
        rows = await cursor.fetchall()
        return [_row_to_message(row) for row in rows]

    async def mark_messages_read(self, message_ids: Iterable[str], agent_id: str) -> None:
        """Mark messages read for one reader."""
        conn = self._db()
        ids = list(message_ids)
        if not ids:
            return

        placeholders = _placeholders(ids)
        # Direct messages carry a single read flag
        await conn.execute(
            f"""
            UPDATE messages SET read = 1
            WHERE to_agent = ? AND id IN ({placeholders})
            """,
            (agent_id, *ids),
        )
        # Broadcasts get one receipt per reader
        await conn.execute(
            f"""
            INSERT OR IGNORE INTO message_reads (message_id, agent_id, read_at)
            SELECT id, ?, ? FROM messages
            WHERE to_agent = ? AND id IN ({placeholders})
            """,
            (agent_id, _ts(utcnow()), BROADCAST, *ids),
        )
        await conn.commit()

    async def get_recent_messages(self, limit: int = 50) -> list[Message]:
        """All messages, newest first."""
        cursor = await self._db().execute(
            """
            SELECT * FROM messages
            ORDER BY timestamp DESC, rowid DESC
            LIMIT ?
            """,
            (limit,),
        )
        rows = await cursor.fetchall()
        return [_row_to_message(row) for row in rows]

    # Handoffs
    async def save_handoff(self, handoff: Handoff) -> Handoff:
        """Insert a handoff. A repeated ``origin_key`` returns the stored handoff."""
        conn = self._db()

        handoff.id = handoff.id or new_id()
        cursor = await conn.execute(
            """
            INSERT OR IGNORE INTO handoffs
            (id, from_agent, to_agent, task, context, status, result,
             created_at, updated_at, origin_key)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                handoff.id,
                handoff.from_agent,
                handoff.to_agent,
                handoff.task,
                json.dumps(handoff.context),
                handoff.status.value,
                handoff.result,
                _ts(handoff.created_at),
                _ts(handoff.updated_at),
                handoff.origin_key,
            ),
        )
        await conn.commit()

        if cursor.rowcount == 0:
            existing = await self._get_handoff_by_origin(handoff.origin_key)
            if existing is None:
                raise RuntimeError(f"Handoff {handoff.id} was not stored")
            return existing
        return handoff

    async def _get_handoff_by_origin(self, origin_key: str | None) -> Handoff | None:
        if origin_key is None:
            return None
        cursor = await self._db().execute(
            "SELECT * FROM handoffs WHERE origin_key = ?", (origin_key,)
        )
        row = await cursor.fetchone()
        return _row_to_handoff(row) if row else None

    async def get_handoff(self, handoff_id: str) -> Handoff | None:
        """Get a handoff by id."""
        cursor = await self._db().execute(
            "SELECT * FROM handoffs WHERE id = ?", (handoff_id,)
        )
        row = await cursor.fetchone()
        return _row_to_handoff(row) if row else None

    async def get_handoffs(
        self,
        status: HandoffStatus | None = None,
        limit: int | None = None,
        newest_first: bool = False,
    ) -> list[Handoff]:
        """List handoffs, optionally filtered by status."""
        conditions = []
        params: list = []

        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        direction = "DESC" if newest_first else "ASC"
        limit_clause = ""
        if limit is not None:
            limit_clause = "LIMIT ?"
            params.append(limit)

        cursor = await self._db().execute(
            f"""
            SELECT * FROM handoffs
            {where_clause}
            ORDER BY created_at {direction}, rowid {direction}
            {limit_clause}
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [_row_to_handoff(row) for row in rows]

    async def transition_handoff(
        self,
        handoff_id: str,
        expected: Iterable[HandoffStatus],
        status: HandoffStatus,
        result: str | None = None,
    ) -> bool:
        """Set status if the current status is one of ``expected``."""
        conn = self._db()
        allowed = [s.value for s in expected]
        if not allowed:
            return False

        cursor = await conn.execute(
            f"""
            UPDATE handoffs
            SET status = ?, result = COALESCE(?, result), updated_at = ?
            WHERE id = ? AND status IN ({_placeholders(allowed)})
            """,
            (status.value, result, _ts(utcnow()), handoff_id, *allowed),
        )
        await conn.commit()
        return cursor.rowcount == 1

    # Bridge items
    async def save_bridge_item(self, item: BridgeItem) -> BridgeItem:
        """Insert a bridge item."""
        conn = self._db()

        item.id = item.id or new_id()
        await conn.execute(
            """
            INSERT INTO bridge_items
            (id, direction, agent_id, payload, status, response, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                item.id,
                item.direction.value,
                item.agent_id,
                json.dumps(item.payload),
                item.status.value,
                item.response,
                _ts(item.created_at),
                _ts(item.updated_at),
            ),
        )
        await conn.commit()
        return item

    async def get_bridge_item(self, item_id: str) -> BridgeItem | None:
        """Get a bridge item by id."""
        cursor = await self._db().execute(
            "SELECT * FROM bridge_items WHERE id = ?", (item_id,)
        )
        row = await cursor.fetchone()
        return _row_to_bridge_item(row) if row else None

    async def get_bridge_items(
        self,
        status: BridgeStatus | None = None,
        direction: BridgeDirection | None = None,
    ) -> list[BridgeItem]:
        """List bridge items, oldest first."""
        conditions = []
        params = []

        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        if direction is not None:
            conditions.append("direction = ?")
            params.append(direction.value)

        where_clause = f"WHERE {' AND '.join(conditions)}" if conditions else ""

        cursor = await self._db().execute(
            f"""
            SELECT * FROM bridge_items
            {where_clause}
            ORDER BY created_at ASC, rowid ASC
            """,
            params,
        )
        rows = await cursor.fetchall()
        return [_row_to_bridge_item(row) for row in rows]

    async def transition_bridge_item(
        self,
        item_id: str,
        expected: Iterable[BridgeStatus],
        status: BridgeStatus,
        response: str | None = None,
    ) -> bool:
        """Set status if the current status is one of ``expected``."""
        conn = self._db()
        allowed = [s.value for s in expected]
        if not allowed:
            return False

        cursor = await conn.execute(
            f"""
            UPDATE bridge_items
            SET status = ?, response = COALESCE(?, response), updated_at = ?
            WHERE id = ? AND status IN ({_placeholders(allowed)})
            """,
            (status.value, response, _ts(utcnow()), item_id, *allowed),
        )
        await conn.commit()
        return cursor.rowcount == 1

    # Per-user agent settings
    async def save_agent_settings(self, settings: AgentSettings) -> None:
        """Save overrides for (user, agent)."""
        conn = self._db()

        await conn.execute(
            """
            INSERT OR REPLACE INTO agent_settings
            (user_id, agent_id, model, temperature, max_tokens, system_prompt, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                settings.user_id,
                settings.agent_id,
                settings.model,
                settings.temperature,
                settings.max_tokens,
                settings.system_prompt,
                _ts(utcnow()),
            ),
        )
        await conn.commit()

    async def get_agent_settings(self, user_id: str, agent_id: str) -> AgentSettings | None:
        """Get overrides for (user, agent)."""
        cursor = await self._db().execute(
            """
            SELECT user_id, agent_id, model, temperature, max_tokens, system_prompt
            FROM agent_settings
            WHERE user_id = ? AND agent_id = ?
            """,
            (user_id, agent_id),
        )
        row = await cursor.fetchone()

        if not row:
            return None

        return AgentSettings(
            user_id=row["user_id"],
            agent_id=row["agent_id"],
            model=row["model"],
            temperature=row["temperature"],
            max_tokens=row["max_tokens"],
            system_prompt=row["system_prompt"],
        )
