from contextlib import asynccontextmanager
from typing import AsyncIterator, List
import asyncio

import aiosqlite
from cryptography.fernet import Fernet

from .handle import SQLiteEventStorage, create_schema


@asynccontextmanager
async def sqlite_storage_factory(
    db_path: str,
    *,
    key: bytes | str | None = None,
    pool_size: int = 2,
    busy_timeout_ms: int = 5000,
) -> AsyncIterator[SQLiteEventStorage]:
    """
    Opens the on-disk event queue at `db_path` and yields a storage handle
    bound to it. All connections are closed when the context exits.

    `":memory:"` gives a private in-memory database served by a single
    connection for both reads and writes. With `key`, payloads are
    Fernet-encrypted at rest.
    """
    if not db_path:
        raise ValueError("`db_path` must be provided.")

    is_memory_db = db_path == ":memory:"
    connections: List[aiosqlite.Connection] = []
    try:
        write_conn = await aiosqlite.connect(db_path)
        connections.append(write_conn)
        if not is_memory_db:
            await write_conn.execute("PRAGMA journal_mode=WAL;")
            await write_conn.execute("PRAGMA synchronous = NORMAL;")
        await write_conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
        await create_schema(write_conn)

        # The read pool connects after the schema exists, so read-only
        # connections to a fresh file never see an empty database.
        pool: asyncio.Queue[aiosqlite.Connection] = asyncio.Queue()
        if is_memory_db:
            await pool.put(write_conn)
        else:
            for _ in range(pool_size):
                conn = await aiosqlite.connect(f"file:{db_path}?mode=ro", uri=True)
                connections.append(conn)
                await conn.execute(f"PRAGMA busy_timeout = {busy_timeout_ms};")
                await pool.put(conn)

        yield SQLiteEventStorage(
            write_conn=write_conn,
            write_lock=asyncio.Lock(),
            read_pool=pool,
            fernet=Fernet(key) if key else None,
        )
    finally:
        await asyncio.gather(*(conn.close() for conn in connections), return_exceptions=True)
