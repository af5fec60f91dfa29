"""Day-bucketed counters and stored feedback."""

from __future__ import annotations

from support_relay.core.types import Role
from support_relay.storage.database import Database
from support_relay.storage.models import DailyAnalytics, FeedbackRecord

_COUNTER_COLUMNS = {Role.BOT: "bot", Role.AI: "ai", Role.ADMIN: "admin"}


class AnalyticsRepository:
    def __init__(self, db: Database):
        self._db = db

    async def increment(self, date: str, role: Role) -> None:
        """Create the day's bucket if needed and bump ``total`` and the role counter atomically."""
        column = _COUNTER_COLUMNS[role]
        await self._db.conn.execute(
            f"""INSERT INTO daily_analytics (date, total, {column})
                VALUES (?, 1, 1)
                ON CONFLICT(date)
                DO UPDATE SET total = total + 1, {column} = {column} + 1""",
            (date,),
        )
        await self._db.conn.commit()

    async def get(self, date: str) -> DailyAnalytics:
        cursor = await self._db.conn.execute(
            "SELECT * FROM daily_analytics WHERE date = ?", (date,)
        )
        row = await cursor.fetchone()
        if row is None:
            return DailyAnalytics(date=date)
        return self._row_to_daily(row)

    async def range(self, start: str, end: str) -> list[DailyAnalytics]:
        """Buckets with ``start <= date <= end`` (ISO dates sort lexicographically)."""
        cursor = await self._db.conn.execute(
            "SELECT * FROM daily_analytics WHERE date BETWEEN ? AND ? ORDER BY date",
            (start, end),
        )
        rows = await cursor.fetchall()
        return [self._row_to_daily(row) for row in rows]

    async def save_feedback(self, record: FeedbackRecord) -> int:
        cursor = await self._db.conn.execute(
            """INSERT INTO feedback (message_id, client_id, rating, comment, timestamp)
               VALUES (?, ?, ?, ?, ?)""",
            (record.message_id, record.client_id, record.rating, record.comment, record.timestamp),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    async def feedback_for(self, message_id: int) -> list[FeedbackRecord]:
        cursor = await self._db.conn.execute(
            "SELECT * FROM feedback WHERE message_id = ? ORDER BY id", (message_id,)
        )
        rows = await cursor.fetchall()
        return [
            FeedbackRecord(
                message_id=row["message_id"],
                client_id=row["client_id"],
                rating=row["rating"],
                comment=row["comment"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]

    @staticmethod
    def _row_to_daily(row) -> DailyAnalytics:
        return DailyAnalytics(
            date=row["date"],
            total=row["total"],
            bot=row["bot"],
            ai=row["ai"],
            admin=row["admin"],
        )
