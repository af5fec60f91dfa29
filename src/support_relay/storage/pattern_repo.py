"""Persistence for keyword patterns."""

from __future__ import annotations

import json

from support_relay.core.types import PatternSource
from support_relay.storage.database import Database
from support_relay.storage.models import Pattern

CONFIDENCE_FLOOR = 0.1
CONFIDENCE_CEILING = 1.0


class PatternRepository:
    """CRUD over the pattern table. Iteration order is insertion order."""

    def __init__(self, db: Database):
        self._db = db

    async def all(self) -> list[Pattern]:
        cursor = await self._db.conn.execute("SELECT * FROM patterns ORDER BY id ASC")
        rows = await cursor.fetchall()
        return [self._row_to_pattern(row) for row in rows]

    async def get(self, pattern_id: int) -> Pattern | None:
        cursor = await self._db.conn.execute("SELECT * FROM patterns WHERE id = ?", (pattern_id,))
        row = await cursor.fetchone()
        return self._row_to_pattern(row) if row else None

    async def insert(self, pattern: Pattern) -> Pattern:
        cursor = await self._db.conn.execute(
            """INSERT INTO patterns
               (keywords_json, response, confidence, usage, success_rate,
                source, created_at, created_by)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                json.dumps(pattern.keywords, ensure_ascii=False),
                pattern.response,
                pattern.confidence,
                pattern.usage,
                pattern.success_rate,
                pattern.source.value,
                pattern.created_at,
                pattern.created_by,
            ),
        )
        await self._db.conn.commit()
        pattern.id = cursor.lastrowid
        return pattern

    async def adjust(
        self,
        pattern_id: int,
        usage_delta: int = 0,
        confidence_delta: float = 0.0,
        success_rate_delta: float = 0.0,
    ) -> Pattern | None:
        """Apply deltas in a single statement, clamping rates to [0.1, 1.0]."""
        await self._db.conn.execute(
            """UPDATE patterns SET
                   usage = usage + ?,
                   confidence = MIN(?, MAX(?, confidence + ?)),
                   success_rate = MIN(?, MAX(?, success_rate + ?))
               WHERE id = ?""",
            (
                usage_delta,
                CONFIDENCE_CEILING,
                CONFIDENCE_FLOOR,
                confidence_delta,
                CONFIDENCE_CEILING,
                CONFIDENCE_FLOOR,
                success_rate_delta,
                pattern_id,
            ),
        )
        await self._db.conn.commit()
        return await self.get(pattern_id)

    async def find_by_response(self, response: str) -> Pattern | None:
        cursor = await self._db.conn.execute(
            "SELECT * FROM patterns WHERE response = ? ORDER BY id ASC LIMIT 1", (response,)
        )
        row = await cursor.fetchone()
        return self._row_to_pattern(row) if row else None

    async def count(self) -> int:
        cursor = await self._db.conn.execute("SELECT COUNT(*) AS n FROM patterns")
        row = await cursor.fetchone()
        return row["n"]

    @staticmethod
    def _row_to_pattern(row) -> Pattern:
        return Pattern(
            id=row["id"],
            keywords=json.loads(row["keywords_json"]),
            response=row["response"],
            confidence=row["confidence"],
            usage=row["usage"],
            success_rate=row["success_rate"],
            source=PatternSource(row["source"]),
            created_at=row["created_at"],
            created_by=row["created_by"],
        )
