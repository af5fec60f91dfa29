"""SQLite database connection manager with schema migration."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from support_relay.log import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS messages (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    client_id       TEXT    NOT NULL,
    role            TEXT    NOT NULL CHECK(role IN ('user','bot','ai','admin','system')),
    content         TEXT    NOT NULL,
    timestamp       INTEGER NOT NULL,
    confidence      REAL,
    admin_id        TEXT
);

CREATE INDEX IF NOT EXISTS idx_messages_client
    ON messages(client_id, timestamp);

CREATE INDEX IF NOT EXISTS idx_messages_timestamp
    ON messages(timestamp);

CREATE TABLE IF NOT EXISTS patterns (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    keywords_json   TEXT    NOT NULL,
    response        TEXT    NOT NULL,
    confidence      REAL    NOT NULL,
    usage           INTEGER NOT NULL DEFAULT 0,
    success_rate    REAL    NOT NULL DEFAULT 0.8,
    source          TEXT    NOT NULL DEFAULT 'default',
    created_at      INTEGER NOT NULL DEFAULT 0,
    created_by      TEXT
);

CREATE TABLE IF NOT EXISTS daily_analytics (
    date            TEXT    PRIMARY KEY,
    total           INTEGER NOT NULL DEFAULT 0,
    bot             INTEGER NOT NULL DEFAULT 0,
    ai              INTEGER NOT NULL DEFAULT 0,
    admin           INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS feedback (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    message_id      INTEGER NOT NULL REFERENCES messages(id),
    client_id       TEXT,
    rating          TEXT    NOT NULL CHECK(rating IN ('positive','negative','neutral')),
    comment         TEXT,
    timestamp       INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS takeovers (
    conversation_id TEXT    PRIMARY KEY,
    admin_id        TEXT    NOT NULL,
    timestamp       INTEGER NOT NULL,
    status          TEXT    NOT NULL CHECK(status IN ('active','released'))
);

CREATE TABLE IF NOT EXISTS admin_codes (
    identity        TEXT    PRIMARY KEY,
    code            TEXT    NOT NULL,
    expires         INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS admin_sessions (
    token           TEXT    PRIMARY KEY,
    admin_id        TEXT    NOT NULL,
    created         INTEGER NOT NULL,
    expires         INTEGER NOT NULL
);
"""


def _unicode_lower(value: str | None) -> str | None:
    return value.lower() if value is not None else None


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        # SQLite's lower() only folds ASCII; content is mostly Turkish
        await self._conn.create_function("ulower", 1, _unicode_lower, deterministic=True)
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def ping(self) -> bool:
        cursor = await self.conn.execute("SELECT 1")
        row = await cursor.fetchone()
        return row is not None

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
