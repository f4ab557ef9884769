"""
SQLite counter store.

Uses aiosqlite; one table, JSON text values.
"""

from __future__ import annotations

import json
import time
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from courier.core.errors import StorageError
from courier.store.base import CounterStore

logger = logging.getLogger(__name__)


class SQLiteCounterStore(CounterStore):
    """
    Usage:
        store = SQLiteCounterStore("~/.courier/counters.db")
        await store.initialize()
        await store.save("rate_limit:push", {"count": 1, "reset_at": 0})
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(str(self._db_path))
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute(
                """
                CREATE TABLE IF NOT EXISTS counters (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at REAL NOT NULL
                )
                """
            )
            await self._db.commit()
            logger.debug(f"Counter store initialized at {self._db_path}")
        except Exception as e:
            raise StorageError(f"Failed to initialize SQLite at {self._db_path}: {e}") from e

    async def _ensure_db(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        return self._db  # type: ignore[return-value]

    async def load(self, key: str) -> dict[str, Any] | None:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT value FROM counters WHERE key = ?", (key,)
            ) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(f"Failed to load key '{key}': {e}") from e
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError:
            logger.warning(f"Discarding corrupt counter value for {key!r}")
            return None

    async def save(self, key: str, value: dict[str, Any]) -> None:
        db = await self._ensure_db()
        try:
            await db.execute(
                """
                INSERT INTO counters (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, json.dumps(value), time.time()),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(f"Failed to save key '{key}': {e}") from e

    async def remove(self, key: str) -> bool:
        db = await self._ensure_db()
        try:
            cursor = await db.execute("DELETE FROM counters WHERE key = ?", (key,))
            await db.commit()
            return cursor.rowcount > 0
        except Exception as e:
            raise StorageError(f"Failed to remove key '{key}': {e}") from e

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
