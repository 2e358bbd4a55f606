import pytest
from pytest_asyncio import fixture
import asyncio
import logging
import os
import tempfile

import aiosqlite
from cryptography.fernet import Fernet

from pyreport.adaptors.sqlite import sqlite_storage_factory, SQLiteEventStorage


@fixture
async def storage():
    """
    Provides a SQLiteEventStorage with a clean in-memory database for each test function.
    """
    async with sqlite_storage_factory(":memory:") as handle:
        yield handle


@fixture
def db_path():
    with tempfile.TemporaryDirectory() as tmpdir:
        yield os.path.join(tmpdir, "events.db")


@pytest.mark.asyncio
async def test_save_single_event(storage):
    record_id = await storage.save(b'{"message": "hi"}')
    assert record_id == 1

    # Verify the event was saved correctly
    saved = await storage.list_saved()
    assert len(saved) == 1
    assert saved[0].record_id == 1
    assert saved[0].data == b'{"message": "hi"}'
    assert saved[0].saved_at.tzinfo is not None


@pytest.mark.asyncio
async def test_list_in_insertion_order(storage):
    for data in (b"first", b"second", b"third"):
        await storage.save(data)

    saved = await storage.list_saved()
    assert [record.data for record in saved] == [b"first", b"second", b"third"]
    assert [record.record_id for record in saved] == [1, 2, 3]


@pytest.mark.asyncio
async def test_record_deletes_itself(storage):
    await storage.save(b"a")
    await storage.save(b"b")

    saved = await storage.list_saved()
    await saved[0].delete()

    remaining = await storage.list_saved()
    assert [record.data for record in remaining] == [b"b"]
    assert await storage.count() == 1


@pytest.mark.asyncio
async def test_delete_unknown_record_is_a_no_op(storage):
    await storage.save(b"a")
    await storage.delete(999)
    assert await storage.count() == 1


@pytest.mark.asyncio
async def test_empty_storage(storage):
    assert await storage.list_saved() == []
    assert await storage.count() == 0


@pytest.mark.asyncio
async def test_file_persistence(db_path):
    # Session 1: save an event
    async with sqlite_storage_factory(db_path) as storage:
        await storage.save(b"kept across sessions")

    # Session 2: read and verify
    async with sqlite_storage_factory(db_path) as storage:
        saved = await storage.list_saved()
        assert [record.data for record in saved] == [b"kept across sessions"]


@pytest.mark.asyncio
async def test_ids_are_not_reused_after_delete(db_path):
    async with sqlite_storage_factory(db_path) as storage:
        first = await storage.save(b"a")
        await storage.delete(first)
        second = await storage.save(b"b")
        assert second > first


@pytest.mark.asyncio
async def test_encrypted_at_rest(db_path):
    key = Fernet.generate_key()
    async with sqlite_storage_factory(db_path, key=key) as storage:
        await storage.save(b"secret payload")
        async with storage.write_conn.execute("SELECT data FROM saved_events") as cursor:
            (blob,) = await cursor.fetchone()
        assert b"secret payload" not in blob

    async with sqlite_storage_factory(db_path, key=key) as storage:
        saved = await storage.list_saved()
        assert [record.data for record in saved] == [b"secret payload"]


@pytest.mark.asyncio
async def test_wrong_key_skips_unreadable_records(db_path, caplog):
    async with sqlite_storage_factory(db_path, key=Fernet.generate_key()) as storage:
        await storage.save(b"secret payload")

    async with sqlite_storage_factory(db_path, key=Fernet.generate_key()) as storage:
        with caplog.at_level(logging.WARNING, logger="pyreport.adaptors.sqlite.handle"):
            assert await storage.list_saved() == []
        # The row is kept; only this reader cannot decrypt it.
        assert await storage.count() == 1
    assert "Skipping unreadable saved event 1" in caplog.text


@pytest.mark.asyncio
async def test_missing_path_is_rejected():
    with pytest.raises(ValueError):
        async with sqlite_storage_factory(""):
            pass


@pytest.mark.asyncio
async def test_concurrent_saves(db_path):
    async with sqlite_storage_factory(db_path) as storage:
        record_ids = await asyncio.gather(*(storage.save(f"event {i}".encode()) for i in range(50)))
        assert sorted(record_ids) == list(range(1, 51))
        assert await storage.count() == 50


@pytest.mark.asyncio
async def test_handle_type(storage):
    assert isinstance(storage, SQLiteEventStorage)


@pytest.mark.asyncio
async def test_failed_delete_rolls_back_and_raises(storage, caplog):
    record_id = await storage.save(b"a")
    await storage.write_conn.execute("DROP TABLE saved_events")
    await storage.write_conn.commit()

    with caplog.at_level(logging.ERROR, logger="pyreport.adaptors.sqlite.handle"):
        with pytest.raises(aiosqlite.OperationalError):
            await storage.delete(record_id)
    assert f"Failed to delete saved event {record_id}" in caplog.text
    # No transaction is left open on the write connection.
    assert not storage.write_conn.in_transaction
