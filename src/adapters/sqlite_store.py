"""SQLite content store adapter.

Implements the core ContentStore port on a single key-value table.
"""

from __future__ import annotations

import sqlite3
from typing import Optional


class SQLiteContentStore:
    """Thin SQLite wrapper that satisfies the ContentStore contract."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        """Create the kv table if it does not exist."""

        with self._connect() as conn:
            # kv holds every record; the key prefix carries the record type.
            # Fields:
            # - key: e.g. user:<id>, backup:<channel>:<message> (PRIMARY KEY)
            # - value: JSON document or plain string flag
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def ping(self) -> bool:
        """Return True when the database file can be opened and queried."""

        try:
            with self._connect() as conn:
                conn.execute("SELECT 1 FROM kv LIMIT 1").fetchall()
        except sqlite3.Error:
            return False
        return True

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def put(self, key: str, value: str) -> None:
        """Upsert a value; the last write wins."""

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO kv (key, value)
                VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value
                """,
                (key, value),
            )

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))

    def list_keys(self, prefix: str) -> list[str]:
        """Return keys starting with ``prefix`` in lexical order."""

        with self._connect() as conn:
            rows = conn.execute(
                "SELECT key FROM kv WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [row["key"] for row in rows]
