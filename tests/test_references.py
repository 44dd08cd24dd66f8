from __future__ import annotations

from datetime import datetime, timezone

import pytest

from memoria.errors import NotFoundError, ValidationError
from memoria.services.food import add_food_entry
from memoria.services.history import get_food_for_mood, get_moods_for_food, get_person_history, get_place_history
from memoria.services.memories import add_memory
from memoria.services.moods import get_entry, get_stats, save_entry
from memoria.services.people import add_person, list_people
from memoria.services.places import add_place, get_place, list_places
from memoria.services.references import (
    FOOD_MOOD_TAG,
    save_entry_with_references,
    save_food_entry_with_references,
)


def test_mood_location_resolves_to_existing_place(with_store):
    async def scenario(store):
        park = await add_place(store, {"name": "Park"})
        saved = await save_entry_with_references(
            store, {"rating": 5, "emotion": "happy", "location": "park"}, people_names=["Ann", " "]
        )
        return park, saved, await get_place(store, park.id), await list_people(store), await list_places(store)

    park, saved, place, people, places = with_store(scenario)
    assert saved.place_id == park.id
    assert saved.location == "park"
    assert place.mood_ids == [saved.id]
    assert len(places) == 1
    assert [p.name for p in people] == ["Ann"]
    assert saved.people == [people[0].id]


def test_mood_location_creates_place_when_missing(with_store):
    async def scenario(store):
        saved = await save_entry_with_references(store, {"rating": 2, "emotion": "tired", "location": "Airport"})
        return saved, await list_places(store)

    saved, places = with_store(scenario)
    assert [p.name for p in places] == ["Airport"]
    assert saved.place_id == places[0].id


def test_food_with_mood_creates_a_linked_mood_entry(with_store):
    meal_time = datetime(2026, 7, 4, 13, 30, tzinfo=timezone.utc)

    async def scenario(store):
        ann = await add_person(store, {"name": "Ann"})
        food = await save_food_entry_with_references(
            store,
            {"name": "Tacos", "date": meal_time, "mood_rating": 4, "mood_emotion": "excited"},
            place_name="Taqueria",
            people_names=["ann", "Ben"],
        )
        mood = await get_entry(store, food.mood_id)
        return ann, food, mood, await list_people(store)

    ann, food, mood, people = with_store(scenario)
    assert mood is not None
    assert mood.tags == [FOOD_MOOD_TAG]
    assert mood.rating == 4 and mood.emotion == "excited"
    assert mood.entry_time == int(meal_time.timestamp() * 1000)
    assert mood.notes == "Added while tracking food: Tacos"
    assert mood.place_id == food.place_id is not None
    assert ann.id in food.people
    assert len(food.people) == 2
    assert len(people) == 2


def test_food_without_mood_leaves_mood_table_alone(with_store):
    async def scenario(store):
        food = await save_food_entry_with_references(store, {"name": "Water", "meal_type": "drink"})
        return food, await get_stats(store)

    food, stats = with_store(scenario)
    assert food.mood_id is None
    assert food.place_id is None
    assert stats.entry_count == 0


@pytest.mark.parametrize(
    "entry",
    [
        {"emotion": "happy", "location": "Cafe"},
        {"rating": 9, "emotion": "happy", "location": "Cafe"},
        {"rating": 4, "emotion": "  ", "location": "Cafe"},
    ],
)
def test_invalid_entry_writes_no_places_or_people(with_store, entry):
    async def scenario(store):
        with pytest.raises(ValidationError):
            await save_entry_with_references(store, entry, people_names=["Ann"])
        return await list_places(store), await list_people(store), await get_stats(store)

    places, people, stats = with_store(scenario)
    assert places == []
    assert people == []
    assert stats.entry_count == 0


def test_food_and_mood_history_follow_the_link(with_store):
    async def scenario(store):
        food = await save_food_entry_with_references(
            store, {"name": "Ramen", "mood_rating": 5, "mood_emotion": "happy"}
        )
        plain = await add_food_entry(store, {"name": "Apple"})
        return (
            food,
            await get_food_for_mood(store, food.mood_id),
            await get_moods_for_food(store, food.id),
            await get_moods_for_food(store, plain.id),
            await get_moods_for_food(store, "missing"),
        )

    food, foods, moods, none_linked, none_missing = with_store(scenario)
    assert [f.id for f in foods] == [food.id]
    assert [m.id for m in moods] == [food.mood_id]
    assert none_linked == [] and none_missing == []


def test_person_history_collects_moods_food_and_memories(with_store):
    async def scenario(store):
        mood = await save_entry_with_references(store, {"rating": 4, "emotion": "calm"}, people_names=["Ann"])
        ann = (await list_people(store))[0]
        food = await save_food_entry_with_references(store, {"name": "Pizza"}, people_names=["ann"])
        await save_entry(store, {"rating": 2, "emotion": "sad"})
        memory = await add_memory(store, {"title": "Birthday", "people": [ann.id]})
        return mood, food, memory, await get_person_history(store, ann.id)

    mood, food, memory, history = with_store(scenario)
    assert history.person.name == "Ann"
    assert [m.id for m in history.moods] == [mood.id]
    assert [f.id for f in history.food] == [food.id]
    assert [m.id for m in history.memories] == [memory.id]


def test_place_history_collects_moods_and_food(with_store):
    async def scenario(store):
        mood = await save_entry_with_references(store, {"rating": 5, "emotion": "happy", "location": "Beach"})
        food = await save_food_entry_with_references(store, {"name": "Fries"}, place_name="beach")
        await save_entry(store, {"rating": 3, "emotion": "calm"})
        return mood, food, await get_place_history(store, mood.place_id)

    mood, food, history = with_store(scenario)
    assert history.place.name == "Beach"
    assert [m.id for m in history.moods] == [mood.id]
    assert [f.id for f in history.food] == [food.id]


def test_history_for_unknown_person_or_place(with_store):
    async def scenario(store):
        with pytest.raises(NotFoundError):
            await get_person_history(store, "nobody")
        with pytest.raises(NotFoundError):
            await get_place_history(store, "nowhere")

    with_store(scenario)
