"""
This module provides the SQLite implementation of the `EventStorage`
protocol: the on-disk queue of encoded events whose send failed.

Writes go through a single dedicated connection guarded by a lock; reads
borrow a connection from a small pool. When a Fernet key is configured,
payloads are encrypted before they reach the database.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, List
import asyncio
import logging

import aiosqlite
import pydantic_core
from cryptography.fernet import Fernet, InvalidToken

from ...models import PersistedEvent

logger = logging.getLogger(__name__)


async def create_schema(conn: aiosqlite.Connection):
    await conn.execute(
        """
        CREATE TABLE IF NOT EXISTS saved_events (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            saved_at TEXT NOT NULL,
            data BLOB NOT NULL
        )
    """
    )
    await conn.commit()


class SQLiteEventStorage:
    """
    A handle over the `saved_events` table. Records are listed in insertion
    order, each bound to `delete` so the delivery pipeline can remove it after
    a successful resend.
    """

    def __init__(
        self,
        write_conn: aiosqlite.Connection,
        write_lock: asyncio.Lock,
        read_pool: asyncio.Queue,
        fernet: Fernet | None = None,
    ):
        self.write_conn = write_conn
        self.write_lock = write_lock
        self.read_pool = read_pool
        self.fernet = fernet

    @asynccontextmanager
    async def _read_conn(self) -> AsyncIterator[aiosqlite.Connection]:
        """Provides a connection from the read pool."""
        conn = await self.read_pool.get()
        try:
            yield conn
        finally:
            await self.read_pool.put(conn)

    async def save(self, data: bytes) -> int:
        """Appends one encoded event and returns its record id."""
        blob = self.fernet.encrypt(data) if self.fernet else data
        saved_at = datetime.now(timezone.utc).isoformat()
        async with self.write_lock:
            try:
                cursor = await self.write_conn.execute(
                    "INSERT INTO saved_events (saved_at, data) VALUES (?, ?)",
                    (saved_at, blob),
                )
                record_id = cursor.lastrowid
                await cursor.close()
                await self.write_conn.commit()
            except Exception as e:
                await self.write_conn.rollback()
                logger.error(f"Failed to save event to SQLite: {e}")
                raise
        return record_id

    async def list_saved(self) -> List[PersistedEvent]:
        records: List[PersistedEvent] = []
        async with self._read_conn() as conn:
            async with conn.execute("SELECT id, saved_at, data FROM saved_events ORDER BY id") as cursor:
                async for record_id, saved_at, blob in cursor:
                    try:
                        data = self.fernet.decrypt(blob) if self.fernet else blob
                        record = PersistedEvent(
                            record_id=record_id,
                            data=data,
                            saved_at=datetime.fromisoformat(saved_at),
                        )
                    except (InvalidToken, pydantic_core.ValidationError, ValueError) as e:
                        logger.warning(f"Skipping unreadable saved event {record_id}: {e!r}")
                        continue
                    records.append(record.bind(self.delete))
        return records

    async def delete(self, record_id: int):
        async with self.write_lock:
            try:
                await self.write_conn.execute("DELETE FROM saved_events WHERE id = ?", (record_id,))
                await self.write_conn.commit()
            except Exception as e:
                await self.write_conn.rollback()
                logger.error(f"Failed to delete saved event {record_id} from SQLite: {e}")
                raise

    async def count(self) -> int:
        async with self._read_conn() as conn:
            async with conn.execute("SELECT COUNT(id) FROM saved_events") as cursor:
                row = await cursor.fetchone()
                return row[0] if row else 0
