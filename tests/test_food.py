from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from memoria.enums import MealType
from memoria.errors import NotFoundError, ValidationError
from memoria.schemas import FoodEntry
from memoria.services.food import (
    add_food_entry,
    delete_food_entry,
    get_food_entries_between,
    get_food_entry,
    list_food_entries,
    summarize_nutrition,
    update_food_entry,
)
from memoria.services.people import add_person, delete_person
from memoria.services.places import add_place, delete_place


def _at(day, hour=12):
    return datetime(2026, 4, day, hour, tzinfo=timezone.utc)


def test_add_and_get_food_entry(with_store):
    async def scenario(store):
        saved = await add_food_entry(
            store,
            {"name": " Ramen ", "mealType": "Dinner", "calories": 650, "protein": 25, "date": _at(3, 19)},
        )
        return saved, await get_food_entry(store, saved.id)

    saved, fetched = with_store(scenario)
    assert fetched == saved
    assert saved.name == "Ramen"
    assert saved.meal_type is MealType.DINNER
    assert saved.calories == 650 and saved.carbs == 0
    assert saved.date == _at(3, 19)
    assert saved.is_restaurant is False


def test_defaults_to_snack_and_now(with_store):
    saved = with_store(lambda store: add_food_entry(store, FoodEntry(name="apple")))
    assert saved.meal_type is MealType.SNACK
    assert saved.date is not None


def test_negative_macros_are_rejected(with_store):
    async def scenario(store):
        with pytest.raises(ValidationError):
            await add_food_entry(store, {"name": "x", "fat": -1})
        return await list_food_entries(store)

    assert with_store(scenario) == []


def test_list_and_range(with_store):
    async def scenario(store):
        for day in (1, 2, 3):
            await add_food_entry(store, {"name": f"meal {day}", "date": _at(day)})
        newest = await list_food_entries(store, 2, 0)
        oldest = await list_food_entries(store, 10, 0, descending=False)
        between = await get_food_entries_between(store, _at(2, 0), datetime(2026, 4, 3, 23, 59))
        return newest, oldest, between

    newest, oldest, between = with_store(scenario)
    assert [f.name for f in newest] == ["meal 3", "meal 2"]
    assert [f.name for f in oldest] == ["meal 1", "meal 2", "meal 3"]
    assert [f.name for f in between] == ["meal 2", "meal 3"]


def test_update_replaces_people_and_keeps_rest(with_store):
    async def scenario(store):
        ann = await add_person(store, {"name": "Ann"})
        bob = await add_person(store, {"name": "Bob"})
        saved = await add_food_entry(store, {"name": "pizza", "calories": 800, "people": [ann.id]})
        updated = await update_food_entry(store, saved.id, {"people": [bob.id], "food_rating": 4})
        return bob, updated

    bob, updated = with_store(scenario)
    assert updated.people == [bob.id]
    assert updated.food_rating == 4
    assert updated.calories == 800
    assert updated.name == "pizza"


def test_update_rejects_clearing_required_columns(with_store):
    async def scenario(store):
        saved = await add_food_entry(store, {"name": "tea", "meal_type": "drink"})
        with pytest.raises(ValidationError):
            await update_food_entry(store, saved.id, {"meal_type": None})
        with pytest.raises(NotFoundError):
            await update_food_entry(store, "missing", {"notes": "x"})

    with_store(scenario)


def test_deleting_place_or_person_unlinks_food(with_store):
    async def scenario(store):
        place = await add_place(store, {"name": "Diner"})
        person = await add_person(store, {"name": "Cy"})
        saved = await add_food_entry(store, {"name": "burger", "place_id": place.id, "people": [person.id]})
        await delete_place(store, place.id)
        await delete_person(store, person.id)
        return await get_food_entry(store, saved.id)

    fetched = with_store(scenario)
    assert fetched is not None
    assert fetched.place_id is None
    assert fetched.people == []


def test_delete_food_entry(with_store):
    async def scenario(store):
        saved = await add_food_entry(store, {"name": "soup"})
        return await delete_food_entry(store, saved.id), await get_food_entry(store, saved.id)

    removed, fetched = with_store(scenario)
    assert removed is True
    assert fetched is None


def test_summarize_nutrition():
    entries = [
        FoodEntry(name="a", date=_at(1, 8), calories=300, protein=10, carbs=40, fat=5),
        FoodEntry(name="b", date=_at(1, 19), calories=700, protein=30, carbs=60, fat=25),
        FoodEntry(name="c", date=_at(2, 12), calories=501, protein=20, carbs=50, fat=20),
    ]
    summary = summarize_nutrition(entries)

    assert summary.entry_count == 3
    assert summary.avg_calories == 500
    assert summary.avg_protein == 20.0
    assert [d.day for d in summary.days] == [date(2026, 4, 1), date(2026, 4, 2)]
    assert summary.days[0].entries == 2
    assert summary.days[0].calories == 1000
    assert summary.days[1].fat == 20


def test_summarize_nothing():
    summary = summarize_nutrition([])
    assert summary.entry_count == 0
    assert summary.days == []
