"""
Cross-entity reads over the stored links: food.mood_id, mood_people,
food_people, memory_people, place_moods and food.place_id.
"""
from __future__ import annotations

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from memoria.db import Store
from memoria.errors import NotFoundError, StorageError
from memoria.models.mood import MoodPerson
from memoria.schemas import FoodEntry, MoodEntry, PersonHistory, PlaceHistory
from memoria.services.food import (
    get_food_entries_for_mood,
    get_food_entries_for_person,
    get_food_entries_for_place,
    get_food_entry,
)
from memoria.services.memories import get_memories_for_person
from memoria.services.moods import get_entries_by_ids
from memoria.services.people import get_person
from memoria.services.places import get_place

log = logging.getLogger("memoria.history")


async def get_food_for_mood(store: Store, mood_id: str) -> List[FoodEntry]:
    return await get_food_entries_for_mood(store, mood_id)


async def get_moods_for_food(store: Store, food_id: str) -> List[MoodEntry]:
    """The mood entry a meal links to, as a list; empty for unknown or unlinked meals."""
    food = await get_food_entry(store, food_id)
    if food is None or not food.mood_id:
        return []
    return await get_entries_by_ids(store, [food.mood_id])


async def get_person_history(store: Store, person_id: str) -> PersonHistory:
    person = await get_person(store, person_id)
    if person is None:
        raise NotFoundError("person", person_id)
    try:
        async with store.session() as session:
            mood_ids = (
                await session.execute(select(MoodPerson.mood_id).where(MoodPerson.person_id == person_id))
            ).scalars().all()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read moods for person {person_id}: {e}") from e

    history = PersonHistory(
        person=person,
        moods=await get_entries_by_ids(store, mood_ids),
        food=await get_food_entries_for_person(store, person_id),
        memories=await get_memories_for_person(store, person_id),
    )
    log.debug(
        "person %s history: moods=%s food=%s memories=%s",
        person_id,
        len(history.moods),
        len(history.food),
        len(history.memories),
    )
    return history


async def get_place_history(store: Store, place_id: str) -> PlaceHistory:
    place = await get_place(store, place_id)
    if place is None:
        raise NotFoundError("place", place_id)
    return PlaceHistory(
        place=place,
        moods=await get_entries_by_ids(store, place.mood_ids),
        food=await get_food_entries_for_place(store, place_id),
    )
