"""SQLite-backed key-value storage for flow snapshots."""

from __future__ import annotations

import sqlite3
from datetime import UTC, datetime
from pathlib import Path


class SQLiteStorage:
    """File-backed ``KVStorage`` keeping one row per snapshot key.

    Calls are blocking; through ``KVStorageAdapter`` they run on the event loop
    thread, so keep snapshots small or wrap the backend for heavy use.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS flow_snapshots (
                    key TEXT PRIMARY KEY,
                    payload TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

    def get_item(self, key: str) -> str | None:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT payload FROM flow_snapshots WHERE key = ?",
                (key,),
            ).fetchone()
        return row[0] if row else None

    def set_item(self, key: str, value: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO flow_snapshots (key, payload, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    payload=excluded.payload,
                    updated_at=excluded.updated_at
                """,
                (key, value, datetime.now(UTC).isoformat()),
            )

    def remove_item(self, key: str) -> None:
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("DELETE FROM flow_snapshots WHERE key = ?", (key,))

    def list_keys(self) -> list[str]:
        """Return keys in insertion order."""
        with sqlite3.connect(self.db_path) as conn:
            rows = conn.execute(
                "SELECT key FROM flow_snapshots ORDER BY rowid ASC"
            ).fetchall()
        return [row[0] for row in rows]
