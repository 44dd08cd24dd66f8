from __future__ import annotations

from datetime import datetime, timezone

import pytest

from memoria.errors import NotFoundError, ValidationError
from memoria.services.memories import (
    add_memory,
    delete_memory,
    get_memories_for_person,
    get_memory,
    list_memories,
    update_memory,
)
from memoria.services.people import add_person, delete_person


def _at(day):
    return datetime(2025, 8, day, 18, tzinfo=timezone.utc)


def test_add_and_get_memory(with_store):
    async def scenario(store):
        ann = await add_person(store, {"name": "Ann"})
        saved = await add_memory(
            store,
            {
                "title": "  Lake trip ",
                "description": "Swam until sunset",
                "date": _at(3),
                "location": "Lake Tegel",
                "people": [ann.id, ann.id],
                "photos": ["file:///a.jpg", " ", "file:///b.jpg"],
            },
        )
        return ann, saved, await get_memory(store, saved.id)

    ann, saved, fetched = with_store(scenario)
    assert fetched == saved
    assert saved.title == "Lake trip"
    assert saved.date == _at(3)
    assert saved.people == [ann.id]
    assert saved.photos == ["file:///a.jpg", "file:///b.jpg"]


def test_title_is_required(with_store):
    async def scenario(store):
        with pytest.raises(ValidationError) as exc:
            await add_memory(store, {"title": "   "})
        return exc.value.field, await list_memories(store)

    field, memories = with_store(scenario)
    assert field == "title"
    assert memories == []


def test_list_is_newest_date_first(with_store):
    async def scenario(store):
        for day, title in ((1, "first"), (9, "last"), (5, "middle")):
            await add_memory(store, {"title": title, "date": _at(day)})
        return await list_memories(store), await list_memories(store, limit=1, offset=1)

    everything, second = with_store(scenario)
    assert [m.title for m in everything] == ["last", "middle", "first"]
    assert [m.title for m in second] == ["middle"]


def test_partial_update_keeps_untouched_fields(with_store):
    async def scenario(store):
        ann = await add_person(store, {"name": "Ann"})
        ben = await add_person(store, {"name": "Ben"})
        memory = await add_memory(
            store, {"title": "Concert", "date": _at(2), "location": "Arena", "people": [ann.id], "photos": ["p1"]}
        )
        updated = await update_memory(
            store, memory.id, {"description": "Front row", "people": [ben.id], "location": None}
        )
        return ben, memory, updated

    ben, before, after = with_store(scenario)
    assert after.description == "Front row"
    assert after.people == [ben.id]
    assert after.location is None
    assert (after.title, after.date, after.photos) == (before.title, before.date, before.photos)
    assert after.updated_at >= before.updated_at


def test_update_rejects_bad_patches_and_unknown_ids(with_store):
    async def scenario(store):
        memory = await add_memory(store, {"title": "Picnic"})
        with pytest.raises(ValidationError):
            await update_memory(store, memory.id, {"title": ""})
        with pytest.raises(ValidationError):
            await update_memory(store, memory.id, {"date": None})
        with pytest.raises(NotFoundError):
            await update_memory(store, "nope", {"title": "x"})
        return await get_memory(store, memory.id)

    assert with_store(scenario).title == "Picnic"


def test_shared_memories_for_a_person(with_store):
    async def scenario(store):
        ann = await add_person(store, {"name": "Ann"})
        ben = await add_person(store, {"name": "Ben"})
        await add_memory(store, {"title": "Ann only", "date": _at(1), "people": [ann.id]})
        await add_memory(store, {"title": "Both", "date": _at(4), "people": [ann.id, ben.id]})
        await add_memory(store, {"title": "Nobody", "date": _at(6)})
        shared = await get_memories_for_person(store, ann.id)
        await delete_person(store, ben.id)
        both = [m for m in await list_memories(store) if m.title == "Both"][0]
        return ann, shared, both

    ann, shared, both = with_store(scenario)
    assert [m.title for m in shared] == ["Both", "Ann only"]
    assert both.people == [ann.id]


def test_delete_memory(with_store):
    async def scenario(store):
        memory = await add_memory(store, {"title": "Gone"})
        first = await delete_memory(store, memory.id)
        return first, await delete_memory(store, memory.id), await get_memory(store, memory.id)

    assert with_store(scenario) == (True, False, None)
