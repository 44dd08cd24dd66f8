"""
Save helpers that resolve free-text place and person names into stored
entities before writing the entry that points at them.
"""
from __future__ import annotations

import logging
from datetime import timezone
from typing import Any, Iterable, List, Mapping, Optional, Union

from memoria.db import Store
from memoria.logging_setup import log_context
from memoria.models.types import utcnow
from memoria.schemas import FoodEntry, MoodEntry
from memoria.services.food import add_food_entry
from memoria.services.moods import coerce_model, save_entry, validate_entry
from memoria.services.people import find_or_create_person
from memoria.services.places import find_or_create_place

log = logging.getLogger("memoria.references")

FOOD_MOOD_TAG = "food-related"


async def _resolve_people(store: Store, names: Iterable[str]) -> List[str]:
    ids = []
    for name in names:
        if not (name or "").strip():
            continue
        person = await find_or_create_person(store, name)
        ids.append(person.id)
    return ids


async def save_entry_with_references(
    store: Store,
    entry: Union[MoodEntry, Mapping[str, Any]],
    *,
    people_names: Iterable[str] = (),
) -> MoodEntry:
    entry = coerce_model(MoodEntry, entry)
    validate_entry(entry)
    update = {}

    with log_context("save", "mood", entry.id):
        if (entry.location or "").strip() and not entry.place_id:
            place = await find_or_create_place(store, entry.location)
            update["place_id"] = place.id
            log.debug("location %r -> place %s", entry.location, place.id)

        person_ids = await _resolve_people(store, people_names)
        if person_ids:
            update["people"] = sorted(set(entry.people) | set(person_ids))

    return await save_entry(store, entry.model_copy(update=update) if update else entry)


async def save_food_entry_with_references(
    store: Store,
    food: Union[FoodEntry, Mapping[str, Any]],
    *,
    place_name: Optional[str] = None,
    people_names: Iterable[str] = (),
) -> FoodEntry:
    """
    When the meal carries a mood rating and emotion, a mood entry tagged
    "food-related" is written at the meal's time and linked via mood_id.
    """
    food = coerce_model(FoodEntry, food)
    meal_time = food.date or utcnow()
    if meal_time.tzinfo is None:
        meal_time = meal_time.replace(tzinfo=timezone.utc)
    update: dict = {"date": meal_time}

    with log_context("save", "food", food.id):
        if (place_name or "").strip() and not food.place_id:
            place = await find_or_create_place(store, place_name)
            update["place_id"] = place.id

        person_ids = await _resolve_people(store, people_names)
        if person_ids:
            update["people"] = sorted(set(food.people) | set(person_ids))

        if food.mood_rating is not None and (food.mood_emotion or "").strip() and not food.mood_id:
            mood = await save_entry(
                store,
                MoodEntry(
                    entry_time=int(meal_time.timestamp() * 1000),
                    rating=food.mood_rating,
                    emotion=food.mood_emotion,
                    notes=f"Added while tracking food: {food.name or ''}".rstrip(),
                    tags=[FOOD_MOOD_TAG],
                    place_id=update.get("place_id", food.place_id),
                ),
            )
            update["mood_id"] = mood.id
            log.info("mood %s created for meal", mood.id)

    return await add_food_entry(store, food.model_copy(update=update))
