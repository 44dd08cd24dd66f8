from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from memoria.enums import PersonStatus, RelationshipContext
from memoria.errors import NotFoundError, StorageError, ValidationError
from memoria.services import people as people_service
from memoria.services.people import (
    add_person,
    delete_person,
    find_or_create_person,
    get_person,
    list_people,
    update_person,
)


def test_add_and_get_person(with_store):
    async def scenario(store):
        saved = await add_person(
            store,
            {
                "name": "  Maria ",
                "context": "Friend",
                "status": "drifting apart",
                "birthDate": datetime(1990, 6, 1, tzinfo=timezone.utc),
                "hobbies": "climbing, chess, climbing",
                "interests": ["jazz"],
                "phoneNumber": "+49 30 123",
            },
        )
        return saved, await get_person(store, saved.id)

    saved, fetched = with_store(scenario)
    assert fetched == saved
    assert saved.name == "Maria"
    assert saved.hobbies == ["chess", "climbing"]
    assert saved.interests == ["jazz"]
    assert saved.phone_number == "+49 30 123"
    assert saved.context_kind is RelationshipContext.FRIEND
    assert saved.status_kind is PersonStatus.OTHER
    assert saved.status == "drifting apart"


def test_name_is_required(with_store):
    async def scenario(store):
        with pytest.raises(ValidationError):
            await add_person(store, {"name": "   "})
        return await list_people(store)

    assert with_store(scenario) == []


def test_update_replaces_tags_and_clears_deceased_date(with_store):
    async def scenario(store):
        saved = await add_person(
            store,
            {
                "name": "Opa",
                "is_deceased": True,
                "deceased_date": datetime(2020, 1, 1, tzinfo=timezone.utc),
                "hobbies": ["fishing"],
                "interests": ["history"],
            },
        )
        return await update_person(store, saved.id, {"is_deceased": False, "hobbies": ["cards"]})

    updated = with_store(scenario)
    assert updated.is_deceased is False
    assert updated.deceased_date is None
    assert updated.hobbies == ["cards"]
    assert updated.interests == ["history"]


def test_update_missing_and_delete(with_store):
    async def scenario(store):
        with pytest.raises(NotFoundError):
            await update_person(store, "nobody", {"name": "x"})
        saved = await add_person(store, {"name": "Temp", "hobbies": ["x"]})
        removed = await delete_person(store, saved.id)
        return removed, await get_person(store, saved.id), await delete_person(store, saved.id)

    removed, fetched, again = with_store(scenario)
    assert removed is True
    assert fetched is None
    assert again is False


def test_list_newest_first_and_find_or_create(with_store):
    async def scenario(store):
        first = await add_person(store, {"name": "Lena"})
        await add_person(store, {"name": "Tom"})
        same = await find_or_create_person(store, " lena ")
        created = await find_or_create_person(store, "Kai")
        return first, same, created, await list_people(store)

    first, same, created, people = with_store(scenario)
    assert same.id == first.id
    assert created.name == "Kai"
    assert [p.name for p in people] == ["Kai", "Tom", "Lena"]


def test_update_read_failure_is_a_storage_error(with_store, monkeypatch):
    async def locked(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    async def scenario(store):
        ann = await add_person(store, {"name": "Ann"})
        monkeypatch.setattr(AsyncSession, "get", locked)
        with pytest.raises(StorageError, match="Failed to read person"):
            await update_person(store, ann.id, {"email": "ann@example.org"})

    with_store(scenario)


def test_person_missing_after_insert_is_a_storage_error(with_store, monkeypatch):
    async def nothing(store, person_id):
        return None

    async def scenario(store):
        monkeypatch.setattr(people_service, "get_person", nothing)
        with pytest.raises(StorageError, match="vanished"):
            await add_person(store, {"name": "Ann"})

    with_store(scenario)
