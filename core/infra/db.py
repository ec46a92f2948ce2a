"""
Async SQLite persistence for named JSON slots.

A slot holds one whole JSON document (the result array, the latest
summaries); every write replaces the slot.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Tuple

import aiosqlite


logger = logging.getLogger(__name__)


class Database:
    """Lazily connected aiosqlite handle with the slot schema applied."""

    def __init__(self, db_path: str = "data/incidents.db"):
        # Accept sqlite+aiosqlite:///path URLs as well as plain paths
        if "://" in db_path:
            db_path = db_path.split("///", 1)[-1] if "///" in db_path else db_path.split("//", 1)[-1]
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None

    async def connect(self) -> aiosqlite.Connection:
        if self._connection is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = await aiosqlite.connect(self.db_path, timeout=30)
            self._connection.row_factory = aiosqlite.Row
            await self._connection.execute("PRAGMA journal_mode=WAL;")
            await self._create_schema()
            logger.debug(f"Opened slot database {self.db_path}")
        return self._connection

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def write(self, sql: str, params: Tuple[Any, ...] = ()) -> None:
        conn = await self.connect()
        await conn.execute(sql, params)
        await conn.commit()

    async def read_one(self, sql: str, params: Tuple[Any, ...] = ()) -> Optional[aiosqlite.Row]:
        conn = await self.connect()
        async with conn.execute(sql, params) as cursor:
            return await cursor.fetchone()

    async def _create_schema(self) -> None:
        await self._connection.execute("""
            CREATE TABLE IF NOT EXISTS slots (
                slot TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        await self._connection.commit()


class SlotStore:
    """Named JSON slots on top of :class:`Database`."""

    def __init__(self, db: Database):
        self.db = db

    async def put(self, slot: str, value: Any) -> None:
        await self.db.write(
            """
            INSERT INTO slots (slot, value, updated_at) VALUES (?, ?, ?)
            ON CONFLICT(slot) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
            """,
            (slot, json.dumps(value, ensure_ascii=False), datetime.now(tz=timezone.utc).isoformat()),
        )
        logger.debug(f"Slot '{slot}' written")

    async def get(self, slot: str, default: Any = None) -> Any:
        row = await self.db.read_one("SELECT value FROM slots WHERE slot = ?", (slot,))
        if row is None:
            return default
        return json.loads(row["value"])

    async def close(self) -> None:
        await self.db.close()
