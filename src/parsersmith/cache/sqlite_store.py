# src/parsersmith/cache/sqlite_store.py — v1
"""SQLite-based key-value store (STORE_BACKEND=sqlite, default).

Uses stdlib sqlite3 and the built-in JSON functions for atomic counter
increments. Rows live in the shared ``app_config`` table.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from parsersmith.cache.base_config_store import BaseConfigStore
from parsersmith.cache.models import ConfigRow
from parsersmith.core.errors import KeyConflictError

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    is_encrypted INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

_COLUMNS = "key, value, is_encrypted, created_at, updated_at"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SqliteConfigStore(BaseConfigStore):
    """SQLite-backed ``app_config`` table."""

    def __init__(self, db_path: Path | str) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self._db_path))
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> ConfigRow | None:
        """Retrieve one row by key."""
        cursor = self._conn.execute(
            f"SELECT {_COLUMNS} FROM app_config WHERE key = ?", (key,)
        )
        row = cursor.fetchone()
        return None if row is None else self._to_row(row)

    async def scan(self, prefix: str) -> list[ConfigRow]:
        """Literal prefix scan (no LIKE wildcards)."""
        cursor = self._conn.execute(
            f"SELECT {_COLUMNS} FROM app_config WHERE substr(key, 1, ?) = ?",
            (len(prefix), prefix),
        )
        return [self._to_row(row) for row in cursor.fetchall()]

    async def insert(self, key: str, value: str) -> None:
        """Insert a row; the primary key rejects duplicates."""
        now = _now()
        try:
            with self._conn:
                self._conn.execute(
                    f"INSERT INTO app_config ({_COLUMNS}) VALUES (?, ?, 0, ?, ?)",
                    (key, value, now, now),
                )
        except sqlite3.IntegrityError as e:
            raise KeyConflictError(key) from e

    async def increment_field(self, key: str, field: str, amount: int = 1) -> bool:
        """Atomic in-place increment via json_set in a single statement."""
        path = f"$.{field}"
        with self._conn:
            cursor = self._conn.execute(
                """UPDATE app_config
                   SET value = json_set(
                           value, ?, COALESCE(json_extract(value, ?), 0) + ?
                       ),
                       updated_at = ?
                   WHERE key = ?
                     AND CASE WHEN json_valid(value)
                              THEN json_type(value) = 'object'
                              ELSE 0 END""",
                (path, path, amount, _now(), key),
            )
        if cursor.rowcount == 0:
            logger.debug("increment_field skipped for %s (missing or not an object)", key)
            return False
        return True

    async def delete(self, key: str) -> bool:
        """Delete a row."""
        with self._conn:
            cursor = self._conn.execute("DELETE FROM app_config WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    @staticmethod
    def _to_row(row: tuple) -> ConfigRow:
        return ConfigRow(
            key=row[0],
            value=row[1],
            is_encrypted=bool(row[2]),
            created_at=row[3],
            updated_at=row[4],
        )
