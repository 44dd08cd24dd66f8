from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import inspect

from memoria.db import Store
from memoria.errors import StorageError
from memoria.services.moods import get_stats, save_entry

EXPECTED_TABLES = {
    "mood_entries",
    "mood_tags",
    "mood_activities",
    "mood_entry_metadata",
    "mood_people",
    "people",
    "person_tags",
    "places",
    "place_moods",
    "food_entries",
    "food_people",
    "memories",
    "memory_people",
}


async def _tables(store):
    async with store.engine.connect() as conn:
        return set(await conn.run_sync(lambda c: inspect(c).get_table_names()))


def test_ensure_initialized_is_idempotent_and_safe_concurrently(db_url):
    async def main():
        store = Store(db_url)
        try:
            await asyncio.gather(*(store.ensure_initialized() for _ in range(5)))
            await store.ensure_initialized()
            return await _tables(store)
        finally:
            await store.close()

    assert EXPECTED_TABLES <= asyncio.run(main())


def test_second_store_on_existing_file_keeps_data(db_url):
    async def main():
        async with Store(db_url) as store:
            await save_entry(store, {"rating": 3, "emotion": "calm"})
        async with Store(db_url) as store:
            return await get_stats(store)

    assert asyncio.run(main()).entry_count == 1


def test_reset_wipes_the_file_store(db_url, tmp_path):
    async def main():
        async with Store(db_url) as store:
            await save_entry(store, {"rating": 3, "emotion": "calm"})
            assert store.db_path == tmp_path / "memoria.db"
            await store.reset()
            return await get_stats(store), await _tables(store)

    stats, tables = asyncio.run(main())
    assert stats.entry_count == 0
    assert EXPECTED_TABLES <= tables


def test_reset_in_memory_store():
    async def main():
        async with Store("sqlite+aiosqlite:///:memory:") as store:
            assert store.is_memory and store.db_path is None
            await save_entry(store, {"rating": 4, "emotion": "happy"})
            before = await get_stats(store)
            await store.reset()
            return before, await get_stats(store)

    before, after = asyncio.run(main())
    assert before.entry_count == 1
    assert after.entry_count == 0


def test_unusable_store_raises_storage_error(tmp_path):
    # a directory where the database file should be
    (tmp_path / "taken.db").mkdir()
    url = f"sqlite+aiosqlite:///{(tmp_path / 'taken.db').as_posix()}"

    async def main():
        store = Store(url)
        try:
            await store.ensure_initialized()
        finally:
            await store.close()

    with pytest.raises(StorageError):
        asyncio.run(main())
