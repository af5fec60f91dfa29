"""Append-only message log shared by every conversation."""

from __future__ import annotations

import asyncio
from typing import Optional

import aiosqlite

from support_relay.core.clock import Clock
from support_relay.core.errors import InternalError
from support_relay.core.types import Role
from support_relay.log import get_logger
from support_relay.storage.database import Database
from support_relay.storage.models import ConversationSummary, Message

logger = get_logger(__name__)


class MessageStore:
    """Durable ordered log of all messages, keyed by client id and timestamp.

    Appends are serialized by a store-wide lock. Each append gets a timestamp
    strictly greater than the previous one, so the timestamp doubles as a
    polling cursor: a watermark never hides a message appended later.
    """

    def __init__(self, db: Database, clock: Clock):
        self._db = db
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_timestamp = 0

    async def initialize(self) -> None:
        cursor = await self._db.conn.execute("SELECT MAX(timestamp) AS ts FROM messages")
        row = await cursor.fetchone()
        self._last_timestamp = (row["ts"] if row and row["ts"] is not None else 0)
        logger.debug("message_store_loaded", last_timestamp=self._last_timestamp)

    async def append(
        self,
        client_id: str,
        role: Role,
        content: str,
        confidence: Optional[float] = None,
        admin_id: Optional[str] = None,
    ) -> Message:
        """Append a message and return it with its id and timestamp."""
        async with self._lock:
            timestamp = max(self._clock.now_ms(), self._last_timestamp + 1)
            try:
                cursor = await self._db.conn.execute(
                    """INSERT INTO messages
                       (client_id, role, content, timestamp, confidence, admin_id)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (client_id, role.value, content, timestamp, confidence, admin_id),
                )
                await self._db.conn.commit()
            except aiosqlite.Error as e:
                logger.error("message_append_failed", client_id=client_id, role=role.value, error=str(e))
                raise InternalError("Could not store message") from e
            self._last_timestamp = timestamp

        return Message(
            id=cursor.lastrowid,
            client_id=client_id,
            role=role,
            content=content,
            timestamp=timestamp,
            confidence=confidence,
            admin_id=admin_id,
        )

    async def history(self, client_id: str) -> list[Message]:
        return await self._select(
            "SELECT * FROM messages WHERE client_id = ? ORDER BY timestamp, id", (client_id,)
        )

    async def after(self, client_id: str, after: int) -> list[Message]:
        """Messages of one client newer than ``after``."""
        return await self._select(
            """SELECT * FROM messages
               WHERE client_id = ? AND timestamp > ?
               ORDER BY timestamp, id""",
            (client_id, after),
        )

    async def all_after(self, after: int) -> list[Message]:
        """Messages of every client newer than ``after``."""
        return await self._select(
            "SELECT * FROM messages WHERE timestamp > ? ORDER BY timestamp, id", (after,)
        )

    async def get(self, message_id: int) -> Message | None:
        rows = await self._select("SELECT * FROM messages WHERE id = ?", (message_id,))
        return rows[0] if rows else None

    async def exists(self, client_id: str) -> bool:
        cursor = await self._db.conn.execute(
            "SELECT 1 FROM messages WHERE client_id = ? LIMIT 1", (client_id,)
        )
        return await cursor.fetchone() is not None

    async def count(self) -> int:
        cursor = await self._db.conn.execute("SELECT COUNT(*) AS n FROM messages")
        row = await cursor.fetchone()
        return row["n"]

    async def summaries(
        self, since: Optional[int] = None, text_filter: Optional[str] = None
    ) -> list[ConversationSummary]:
        """Per-client aggregates, most recently active first.

        ``since`` restricts the aggregate to messages newer than that timestamp.
        ``text_filter`` keeps clients whose id or any message contains it
        (case-insensitive for content).
        """
        clauses: list[str] = []
        params: list[object] = []
        if since is not None:
            clauses.append("timestamp > ?")
            params.append(since)
        if text_filter:
            clauses.append(
                """client_id IN (
                       SELECT DISTINCT client_id FROM messages
                       WHERE instr(client_id, ?) > 0 OR instr(ulower(content), ?) > 0
                   )"""
            )
            params.extend([text_filter, text_filter.lower()])
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""

        cursor = await self._db.conn.execute(
            f"""SELECT client_id,
                       COUNT(*)               AS message_count,
                       MIN(timestamp)         AS start_time,
                       MAX(timestamp)         AS last_activity,
                       GROUP_CONCAT(DISTINCT role) AS roles
                FROM messages
                {where}
                GROUP BY client_id
                ORDER BY last_activity DESC""",
            params,
        )
        rows = await cursor.fetchall()
        return [
            ConversationSummary(
                client_id=row["client_id"],
                message_count=row["message_count"],
                start_time=row["start_time"],
                last_activity=row["last_activity"],
                roles=sorted((row["roles"] or "").split(",")) if row["roles"] else [],
            )
            for row in rows
        ]

    async def last_message(self, client_id: str) -> Message | None:
        rows = await self._select(
            "SELECT * FROM messages WHERE client_id = ? ORDER BY timestamp DESC, id DESC LIMIT 1",
            (client_id,),
        )
        return rows[0] if rows else None

    async def _select(self, sql: str, params: tuple) -> list[Message]:
        cursor = await self._db.conn.execute(sql, params)
        rows = await cursor.fetchall()
        return [self._row_to_message(row) for row in rows]

    @staticmethod
    def _row_to_message(row) -> Message:
        return Message(
            id=row["id"],
            client_id=row["client_id"],
            role=Role(row["role"]),
            content=row["content"],
            timestamp=row["timestamp"],
            confidence=row["confidence"],
            admin_id=row["admin_id"],
        )
