from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memoria.config import settings
from memoria.db import Store
from memoria.errors import NotFoundError, StorageError, ValidationError
from memoria.ids import new_id
from memoria.logging_setup import log_context
from memoria.models.food import FoodEntryRow, FoodPerson
from memoria.models.types import utcnow
from memoria.schemas import DayNutrition, FoodEntry, FoodEntryPatch, NutritionSummary
from memoria.services.moods import coerce_model, insert_children

log = logging.getLogger("memoria.food")

_SCALAR_FIELDS = (
    "name",
    "date",
    "meal_type",
    "calories",
    "protein",
    "carbs",
    "fat",
    "notes",
    "image_uri",
    "mood_rating",
    "mood_emotion",
    "food_rating",
    "is_restaurant",
    "restaurant_name",
    "place_id",
    "mood_id",
)

# columns that must never be stored as NULL
_NOT_NULL = {"date", "meal_type", "calories", "protein", "carbs", "fat", "is_restaurant"}


def _people_rows(food_id: str, people: Iterable[str]) -> List[FoodPerson]:
    return [FoodPerson(id=new_id(), food_id=food_id, person_id=pid) for pid in people]


async def _load_people(session: AsyncSession, ids: Sequence[str]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = defaultdict(list)
    if not ids:
        return out
    rows = await session.execute(
        select(FoodPerson.food_id, FoodPerson.person_id)
        .where(FoodPerson.food_id.in_(ids))
        .order_by(FoodPerson.person_id)
    )
    for food_id, person_id in rows.all():
        out[food_id].append(person_id)
    return out


def _to_food(row: FoodEntryRow, people: List[str]) -> FoodEntry:
    return FoodEntry(
        id=row.id,
        name=row.name,
        date=row.date,
        meal_type=row.meal_type,
        calories=row.calories,
        protein=row.protein,
        carbs=row.carbs,
        fat=row.fat,
        notes=row.notes,
        image_uri=row.image_uri,
        mood_rating=row.mood_rating,
        mood_emotion=row.mood_emotion,
        food_rating=row.food_rating,
        is_restaurant=row.is_restaurant,
        restaurant_name=row.restaurant_name,
        people=people,
        place_id=row.place_id,
        mood_id=row.mood_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _materialize(session: AsyncSession, rows: Sequence[FoodEntryRow]) -> List[FoodEntry]:
    people = await _load_people(session, [r.id for r in rows])
    return [_to_food(r, people[r.id]) for r in rows]


async def add_food_entry(store: Store, food: Union[FoodEntry, Mapping[str, Any]]) -> FoodEntry:
    food = coerce_model(FoodEntry, food)
    food_id = food.id or new_id()

    with log_context("save", "food", food_id):
        async with store.session() as session:
            session.add(
                FoodEntryRow(
                    id=food_id,
                    name=(food.name or "").strip() or None,
                    date=food.date or utcnow(),
                    meal_type=food.meal_type.value,
                    calories=food.calories,
                    protein=food.protein,
                    carbs=food.carbs,
                    fat=food.fat,
                    notes=food.notes,
                    image_uri=food.image_uri,
                    mood_rating=food.mood_rating,
                    mood_emotion=food.mood_emotion,
                    food_rating=food.food_rating,
                    is_restaurant=food.is_restaurant,
                    restaurant_name=food.restaurant_name,
                    place_id=food.place_id,
                    mood_id=food.mood_id,
                )
            )
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("food entry insert failed")
                raise StorageError(f"Failed to save food entry {food_id}: {e}") from e

            first_error = await insert_children(session, _people_rows(food_id, food.people), what=f"food {food_id}")
        if first_error is not None:
            raise StorageError(f"Food entry {food_id} saved with missing people: {first_error}") from first_error

        log.info("food entry saved: %s kcal", food.calories)

    saved = await get_food_entry(store, food_id)
    if saved is None:
        raise StorageError(f"Food entry {food_id} vanished right after insert")
    return saved


async def get_food_entry(store: Store, food_id: str) -> Optional[FoodEntry]:
    try:
        async with store.session() as session:
            row = await session.get(FoodEntryRow, food_id)
            if row is None:
                return None
            return (await _materialize(session, [row]))[0]
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read food entry {food_id}: {e}") from e


async def list_food_entries(
    store: Store,
    limit: Optional[int] = None,
    offset: int = 0,
    *,
    descending: bool = True,
) -> List[FoodEntry]:
    limit = settings.page_size if limit is None else limit
    if limit < 0 or offset < 0:
        raise ValidationError("limit and offset must be >= 0")
    if descending:
        order = (FoodEntryRow.date.desc(), FoodEntryRow.id.desc())
    else:
        order = (FoodEntryRow.date.asc(), FoodEntryRow.id.asc())
    try:
        async with store.session() as session:
            rows = (
                await session.execute(select(FoodEntryRow).order_by(*order).limit(limit).offset(offset))
            ).scalars().all()
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read food entries: {e}") from e


async def get_food_entries_between(store: Store, start: datetime, end: datetime) -> List[FoodEntry]:
    """Entries dated within [start, end], oldest first. Naive bounds are UTC."""
    start, end = _aware(start), _aware(end)
    if end < start:
        raise ValidationError("end must not be before start", field="end")
    try:
        async with store.session() as session:
            rows = (
                await session.execute(
                    select(FoodEntryRow)
                    .where(FoodEntryRow.date >= start, FoodEntryRow.date <= end)
                    .order_by(FoodEntryRow.date.asc(), FoodEntryRow.id.asc())
                )
            ).scalars().all()
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read food entries: {e}") from e


async def _linked_food(store: Store, *criteria, join=None) -> List[FoodEntry]:
    q = select(FoodEntryRow)
    if join is not None:
        q = q.join(join, join.food_id == FoodEntryRow.id)
    q = q.where(*criteria).order_by(FoodEntryRow.date.desc(), FoodEntryRow.id.desc())
    try:
        async with store.session() as session:
            rows = (await session.execute(q)).scalars().all()
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read food entries: {e}") from e


async def get_food_entries_for_mood(store: Store, mood_id: str) -> List[FoodEntry]:
    """Meals whose mood_id points at the entry, newest first."""
    return await _linked_food(store, FoodEntryRow.mood_id == mood_id)


async def get_food_entries_for_person(store: Store, person_id: str) -> List[FoodEntry]:
    return await _linked_food(store, FoodPerson.person_id == person_id, join=FoodPerson)


async def get_food_entries_for_place(store: Store, place_id: str) -> List[FoodEntry]:
    return await _linked_food(store, FoodEntryRow.place_id == place_id)


async def update_food_entry(
    store: Store,
    food_id: str,
    patch: Union[FoodEntryPatch, Mapping[str, Any]],
) -> FoodEntry:
    patch = coerce_model(FoodEntryPatch, patch)
    fields = patch.model_fields_set
    for name in _NOT_NULL & fields:
        if getattr(patch, name) is None:
            raise ValidationError(f"{name} cannot be cleared", field=name)

    with log_context("update", "food", food_id):
        async with store.session() as session:
            try:
                row = await session.get(FoodEntryRow, food_id)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to read food entry {food_id}: {e}") from e
            if row is None:
                raise NotFoundError("food entry", food_id)

            for name in _SCALAR_FIELDS:
                if name not in fields:
                    continue
                value = getattr(patch, name)
                if name == "meal_type":
                    value = value.value
                elif name == "name":
                    value = (value or "").strip() or None
                setattr(row, name, value)
            row.updated_at = utcnow()

            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("food entry update failed")
                raise StorageError(f"Failed to update food entry {food_id}: {e}") from e

            first_error: Optional[Exception] = None
            if "people" in fields:
                try:
                    await session.execute(delete(FoodPerson).where(FoodPerson.food_id == food_id))
                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    first_error = e
                else:
                    first_error = await insert_children(
                        session, _people_rows(food_id, patch.people or []), what=f"food {food_id}"
                    )

        if first_error is not None:
            raise StorageError(f"Food entry {food_id} updated with missing people: {first_error}") from first_error

    updated = await get_food_entry(store, food_id)
    if updated is None:
        raise NotFoundError("food entry", food_id)
    return updated


async def delete_food_entry(store: Store, food_id: str) -> bool:
    with log_context("delete", "food", food_id):
        async with store.session() as session:
            try:
                res = await session.execute(delete(FoodEntryRow).where(FoodEntryRow.id == food_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to delete food entry {food_id}: {e}") from e
        return (res.rowcount or 0) > 0


def _aware(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _day_of(dt: datetime, tz: Optional[tzinfo]) -> date:
    return _aware(dt).astimezone(tz or timezone.utc).date()


def summarize_nutrition(entries: Iterable[FoodEntry], *, tz: Optional[tzinfo] = None) -> NutritionSummary:
    """
    Per-day macro totals plus per-entry averages. Days are calendar days in
    `tz` (UTC when omitted), listed oldest first.
    """
    entries = [e for e in entries if e.date is not None]
    if not entries:
        return NutritionSummary()

    days: Dict[date, DayNutrition] = {}
    for e in entries:
        day = _day_of(e.date, tz)
        bucket = days.get(day)
        if bucket is None:
            bucket = days[day] = DayNutrition(day=day)
        bucket.entries += 1
        bucket.calories += e.calories
        bucket.protein += e.protein
        bucket.carbs += e.carbs
        bucket.fat += e.fat

    n = len(entries)
    return NutritionSummary(
        entry_count=n,
        avg_calories=round(sum(e.calories for e in entries) / n),
        avg_protein=round(sum(e.protein for e in entries) / n, 1),
        avg_carbs=round(sum(e.carbs for e in entries) / n, 1),
        avg_fat=round(sum(e.fat for e in entries) / n, 1),
        days=[days[d] for d in sorted(days)],
    )
