from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from memoria.errors import NotFoundError, StorageError, ValidationError
from memoria.services import places as places_service
from memoria.services.food import add_food_entry, get_food_entry
from memoria.services.moods import delete_entry, get_entry, save_entry
from memoria.services.places import (
    add_place,
    delete_place,
    find_or_create_place,
    get_nearby_places,
    get_place,
    get_place_mood_ids,
    link_place_mood,
    list_places,
    merge_duplicate_places,
    update_place,
)


def _mood(**kw):
    data = {"rating": 3, "emotion": "neutral"}
    data.update(kw)
    return data


def test_place_crud(with_store):
    async def scenario(store):
        saved = await add_place(store, {"name": "Cafe Luna", "latitude": 48.1, "longitude": 11.5})
        updated = await update_place(store, saved.id, {"notes": "good coffee", "address": None})
        fetched = await get_place(store, saved.id)
        removed = await delete_place(store, saved.id)
        return saved, updated, fetched, removed, await get_place(store, saved.id)

    saved, updated, fetched, removed, gone = with_store(scenario)
    assert saved.id.startswith("pl_")
    assert updated.notes == "good coffee"
    assert fetched == updated
    assert removed is True
    assert gone is None


def test_place_validation(with_store):
    async def scenario(store):
        with pytest.raises(ValidationError):
            await add_place(store, {"name": ""})
        with pytest.raises(ValidationError):
            await add_place(store, {"name": "Nowhere", "latitude": 123})
        with pytest.raises(NotFoundError):
            await update_place(store, "pl_missing", {"name": "x"})

    with_store(scenario)


def test_link_is_idempotent_and_moves_between_places(with_store):
    async def scenario(store):
        home = await add_place(store, {"name": "Home"})
        gym = await add_place(store, {"name": "Gym"})
        mood = await save_entry(store, _mood())
        await link_place_mood(store, home.id, mood.id)
        await link_place_mood(store, home.id, mood.id)
        at_home = await get_place_mood_ids(store, home.id)
        await link_place_mood(store, gym.id, mood.id)
        return mood, at_home, await get_place_mood_ids(store, home.id), await get_entry(store, mood.id), gym

    mood, at_home, after_move, entry, gym = with_store(scenario)
    assert at_home == [mood.id]
    assert after_move == []
    assert entry.place_id == gym.id


def test_mood_delete_removes_place_link(with_store):
    async def scenario(store):
        place = await add_place(store, {"name": "Park"})
        mood = await save_entry(store, _mood(place_id=place.id))
        before = await list_places(store)
        await delete_entry(store, mood.id)
        return before, await list_places(store)

    before, after = with_store(scenario)
    assert before[0].mood_count == 1
    assert after[0].mood_count == 0


def test_get_place_mood_ids_for_unknown_place(with_store):
    async def scenario(store):
        with pytest.raises(NotFoundError):
            await get_place_mood_ids(store, "pl_unknown")

    with_store(scenario)


def test_find_or_create_is_case_insensitive(with_store):
    async def scenario(store):
        first = await find_or_create_place(store, "Library")
        again = await find_or_create_place(store, "  library ")
        return first, again, await list_places(store)

    first, again, places = with_store(scenario)
    assert again.id == first.id
    assert len(places) == 1


def test_nearby_places_ordered_by_distance(with_store):
    async def scenario(store):
        await add_place(store, {"name": "far", "latitude": 52.60, "longitude": 13.40})
        await add_place(store, {"name": "near", "latitude": 52.521, "longitude": 13.401})
        await add_place(store, {"name": "mid", "latitude": 52.54, "longitude": 13.42})
        await add_place(store, {"name": "no coords"})
        return await get_nearby_places(store, 52.52, 13.40, radius_km=5)

    names = [p.name for p in with_store(scenario)]
    assert names == ["near", "mid"]


def test_nearby_rejects_non_positive_radius(with_store):
    async def scenario(store):
        with pytest.raises(ValidationError):
            await get_nearby_places(store, 0, 0, radius_km=0)

    with_store(scenario)


def test_merge_duplicates_moves_links_to_oldest(with_store):
    async def scenario(store):
        keep = await add_place(store, {"name": "Office"})
        dupe = await add_place(store, {"name": " office", "notes": "typo"})
        other = await add_place(store, {"name": "Beach"})
        mood = await save_entry(store, _mood(place_id=dupe.id))
        food = await add_food_entry(store, {"name": "lunch", "place_id": dupe.id})

        merged = await merge_duplicate_places(store)
        merged_again = await merge_duplicate_places(store)
        return (
            keep,
            other,
            merged,
            merged_again,
            await get_place(store, keep.id),
            await get_place(store, dupe.id),
            await get_entry(store, mood.id),
            await get_food_entry(store, food.id),
        )

    keep, other, merged, merged_again, kept, old, mood, food = with_store(scenario)
    assert merged == 1
    assert merged_again == 0
    assert kept.mood_ids == [mood.id]
    assert old.notes == f"[MERGED into {keep.id}] typo"
    assert mood.place_id == keep.id
    assert food.place_id == keep.id


def test_update_read_failure_is_a_storage_error(with_store, monkeypatch):
    async def locked(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    async def scenario(store):
        park = await add_place(store, {"name": "Park"})
        monkeypatch.setattr(AsyncSession, "get", locked)
        with pytest.raises(StorageError, match="Failed to read place"):
            await update_place(store, park.id, {"notes": "shady"})

    with_store(scenario)


def test_place_missing_after_insert_is_a_storage_error(with_store, monkeypatch):
    async def nothing(store, place_id):
        return None

    async def scenario(store):
        monkeypatch.setattr(places_service, "get_place", nothing)
        with pytest.raises(StorageError, match="vanished"):
            await add_place(store, {"name": "Park"})

    with_store(scenario)
