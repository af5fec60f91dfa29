"""Pending one-time codes and admin sessions."""

from __future__ import annotations

from support_relay.storage.database import Database
from support_relay.storage.models import AdminSession, PendingCode


class AuthRepository:
    def __init__(self, db: Database):
        self._db = db

    async def put_code(self, code: PendingCode) -> None:
        """Store a pending code, replacing any earlier one for the identity."""
        await self._db.conn.execute(
            """INSERT INTO admin_codes (identity, code, expires) VALUES (?, ?, ?)
               ON CONFLICT(identity) DO UPDATE SET code = excluded.code, expires = excluded.expires""",
            (code.identity, code.code, code.expires),
        )
        await self._db.conn.commit()

    async def get_code(self, identity: str) -> PendingCode | None:
        cursor = await self._db.conn.execute(
            "SELECT * FROM admin_codes WHERE identity = ?", (identity,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return PendingCode(identity=row["identity"], code=row["code"], expires=row["expires"])

    async def delete_code(self, identity: str) -> bool:
        cursor = await self._db.conn.execute(
            "DELETE FROM admin_codes WHERE identity = ?", (identity,)
        )
        await self._db.conn.commit()
        return cursor.rowcount > 0

    async def put_session(self, session: AdminSession) -> None:
        await self._db.conn.execute(
            "INSERT INTO admin_sessions (token, admin_id, created, expires) VALUES (?, ?, ?, ?)",
            (session.token, session.admin_id, session.created, session.expires),
        )
        await self._db.conn.commit()

    async def get_session(self, token: str) -> AdminSession | None:
        cursor = await self._db.conn.execute(
            "SELECT * FROM admin_sessions WHERE token = ?", (token,)
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return AdminSession(
            token=row["token"],
            admin_id=row["admin_id"],
            created=row["created"],
            expires=row["expires"],
        )

    async def purge_expired(self, now_ms: int) -> tuple[int, int]:
        """Delete expired codes and sessions. Returns (codes, sessions) removed."""
        codes = await self._db.conn.execute("DELETE FROM admin_codes WHERE expires < ?", (now_ms,))
        sessions = await self._db.conn.execute(
            "DELETE FROM admin_sessions WHERE expires < ?", (now_ms,)
        )
        await self._db.conn.commit()
        return codes.rowcount, sessions.rowcount
