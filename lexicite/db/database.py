"""SQLite persistence for document state and report history via aiosqlite."""

from __future__ import annotations

import json

import aiosqlite

from lexicite.models.report import ReportEntry

SCHEMA = """
CREATE TABLE IF NOT EXISTS state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS reports (
    id TEXT PRIMARY KEY,
    timestamp INTEGER NOT NULL,
    document_title TEXT NOT NULL,
    payload_json TEXT NOT NULL
);
"""

TEXT_KEY = "document_text"
TITLE_KEY = "document_title"
CREDENTIAL_KEY = "courtlistener_token"


class Database:
    """Async SQLite database for persisted session state."""

    def __init__(self, path: str = "lexicite.db") -> None:
        self.path = path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        self._db = await aiosqlite.connect(self.path)
        self._db.row_factory = aiosqlite.Row
        await self._db.executescript(SCHEMA)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected — call connect() first")
        return self._db

    # -- State --

    async def get_state(self, key: str) -> str | None:
        cursor = await self.db.execute("SELECT value FROM state WHERE key = ?", (key,))
        row = await cursor.fetchone()
        return row["value"] if row else None

    async def set_state(self, key: str, value: str) -> None:
        await self.db.execute(
            "INSERT INTO state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
            (key, value),
        )
        await self.db.commit()

    async def delete_state(self, key: str) -> None:
        await self.db.execute("DELETE FROM state WHERE key = ?", (key,))
        await self.db.commit()

    async def save_document(self, text: str, title: str) -> None:
        await self.db.executemany(
            "INSERT INTO state (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = CURRENT_TIMESTAMP",
            [(TEXT_KEY, text), (TITLE_KEY, title)],
        )
        await self.db.commit()

    # -- Reports --

    async def add_report(self, entry: ReportEntry, limit: int) -> None:
        """Store a report and trim history to the ``limit`` most recent."""
        await self.db.execute(
            "INSERT OR REPLACE INTO reports (id, timestamp, document_title, payload_json) "
            "VALUES (?, ?, ?, ?)",
            (entry.id, entry.timestamp, entry.document_title, json.dumps(entry.to_dict())),
        )
        await self.db.execute(
            "DELETE FROM reports WHERE id NOT IN "
            "(SELECT id FROM reports ORDER BY timestamp DESC, rowid DESC LIMIT ?)",
            (limit,),
        )
        await self.db.commit()

    async def get_reports(self, limit: int) -> list[ReportEntry]:
        cursor = await self.db.execute(
            "SELECT payload_json FROM reports ORDER BY timestamp DESC, rowid DESC LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [ReportEntry.from_dict(json.loads(r["payload_json"])) for r in rows]

    async def clear_reports(self) -> None:
        await self.db.execute("DELETE FROM reports")
        await self.db.commit()
