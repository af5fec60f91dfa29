"""Admin takeover records, one row per conversation."""

from __future__ import annotations

from support_relay.core.types import TakeoverStatus
from support_relay.storage.database import Database
from support_relay.storage.models import Takeover


class TakeoverRepository:
    def __init__(self, db: Database):
        self._db = db

    async def upsert(self, takeover: Takeover) -> None:
        await self._db.conn.execute(
            """INSERT INTO takeovers (conversation_id, admin_id, timestamp, status)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(conversation_id) DO UPDATE SET
                   admin_id = excluded.admin_id,
                   timestamp = excluded.timestamp,
                   status = excluded.status""",
            (
                takeover.conversation_id,
                takeover.admin_id,
                takeover.timestamp,
                takeover.status.value,
            ),
        )
        await self._db.conn.commit()

    async def get(self, conversation_id: str) -> Takeover | None:
        cursor = await self._db.conn.execute(
            "SELECT * FROM takeovers WHERE conversation_id = ?", (conversation_id,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return Takeover(
            conversation_id=row["conversation_id"],
            admin_id=row["admin_id"],
            timestamp=row["timestamp"],
            status=TakeoverStatus(row["status"]),
        )

    async def active_ids(self) -> set[str]:
        cursor = await self._db.conn.execute(
            "SELECT conversation_id FROM takeovers WHERE status = ?",
            (TakeoverStatus.ACTIVE.value,),
        )
        rows = await cursor.fetchall()
        return {row["conversation_id"] for row in rows}
