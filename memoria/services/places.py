from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError

from memoria.db import Store
from memoria.errors import NotFoundError, StorageError, ValidationError
from memoria.ids import new_id, new_place_id
from memoria.logging_setup import log_context
from memoria.models.food import FoodEntryRow
from memoria.models.place import PlaceMood, PlaceRow
from memoria.models.types import utcnow
from memoria.schemas import Place, PlacePatch
from memoria.services.moods import coerce_model

log = logging.getLogger("memoria.places")

# rough conversion used for the proximity box
DEGREES_PER_KM = 0.01


def _norm_name(name: Optional[str]) -> str:
    return (name or "").strip().lower()


def _to_place(row: PlaceRow, mood_ids: Optional[List[str]] = None, mood_count: Optional[int] = None) -> Place:
    ids = mood_ids or []
    return Place(
        id=row.id,
        name=row.name,
        address=row.address,
        latitude=row.latitude,
        longitude=row.longitude,
        notes=row.notes,
        mood_ids=ids,
        mood_count=len(ids) if mood_count is None else mood_count,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def add_place(store: Store, place: Union[Place, Mapping[str, Any]]) -> Place:
    place = coerce_model(Place, place)
    name = (place.name or "").strip()
    if not name:
        raise ValidationError("place name is required", field="name")

    place_id = place.id or new_place_id()
    with log_context("save", "place", place_id):
        async with store.session() as session:
            session.add(
                PlaceRow(
                    id=place_id,
                    name=name,
                    address=place.address,
                    latitude=place.latitude,
                    longitude=place.longitude,
                    notes=place.notes,
                )
            )
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("place insert failed")
                raise StorageError(f"Failed to save place {place_id}: {e}") from e
        log.info("place saved: %s", name)

    saved = await get_place(store, place_id)
    if saved is None:
        raise StorageError(f"Place {place_id} vanished right after insert")
    return saved


async def get_place(store: Store, place_id: str) -> Optional[Place]:
    try:
        async with store.session() as session:
            row = await session.get(PlaceRow, place_id)
            if row is None:
                return None
            mood_ids = (
                await session.execute(
                    select(PlaceMood.mood_id).where(PlaceMood.place_id == place_id).order_by(PlaceMood.mood_id)
                )
            ).scalars().all()
            return _to_place(row, list(mood_ids))
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read place {place_id}: {e}") from e


async def list_places(store: Store) -> List[Place]:
    """All places, newest first, each with the number of linked mood entries."""
    q = (
        select(PlaceRow, func.count(PlaceMood.mood_id).label("mood_count"))
        .outerjoin(PlaceMood, PlaceMood.place_id == PlaceRow.id)
        .group_by(PlaceRow.id)
        .order_by(PlaceRow.created_at.desc(), PlaceRow.id.desc())
    )
    try:
        async with store.session() as session:
            rows = (await session.execute(q)).all()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to list places: {e}") from e
    return [_to_place(row, mood_count=int(cnt or 0)) for row, cnt in rows]


async def update_place(store: Store, place_id: str, patch: Union[PlacePatch, Mapping[str, Any]]) -> Place:
    patch = coerce_model(PlacePatch, patch)
    fields = patch.model_fields_set
    if "name" in fields and not (patch.name or "").strip():
        raise ValidationError("place name cannot be empty", field="name")

    with log_context("update", "place", place_id):
        async with store.session() as session:
            try:
                row = await session.get(PlaceRow, place_id)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to read place {place_id}: {e}") from e
            if row is None:
                raise NotFoundError("place", place_id)
            for name in ("name", "address", "latitude", "longitude", "notes"):
                if name in fields:
                    value = getattr(patch, name)
                    setattr(row, name, value.strip() if name == "name" else value)
            row.updated_at = utcnow()
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to update place {place_id}: {e}") from e

    updated = await get_place(store, place_id)
    if updated is None:
        raise NotFoundError("place", place_id)
    return updated


async def delete_place(store: Store, place_id: str) -> bool:
    with log_context("delete", "place", place_id):
        async with store.session() as session:
            try:
                res = await session.execute(delete(PlaceRow).where(PlaceRow.id == place_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to delete place {place_id}: {e}") from e
        return (res.rowcount or 0) > 0


async def link_place_mood(store: Store, place_id: str, mood_id: str) -> None:
    """
    Put a mood entry at a place. Idempotent; a mood already linked to another
    place is moved.
    """
    with log_context("link", "place", place_id):
        async with store.session() as session:
            try:
                existing = (
                    await session.execute(select(PlaceMood).where(PlaceMood.mood_id == mood_id))
                ).scalar_one_or_none()
                if existing is not None and existing.place_id == place_id:
                    return
                if existing is not None:
                    existing.place_id = place_id
                else:
                    session.add(PlaceMood(id=new_id(), place_id=place_id, mood_id=mood_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("place-mood link failed: %s -> %s", place_id, mood_id)
                raise StorageError(f"Failed to link mood {mood_id} to place {place_id}: {e}") from e


async def get_place_mood_ids(store: Store, place_id: str) -> List[str]:
    place = await get_place(store, place_id)
    if place is None:
        raise NotFoundError("place", place_id)
    return place.mood_ids


async def find_place_by_name(store: Store, name: str) -> Optional[Place]:
    key = _norm_name(name)
    if not key:
        return None
    try:
        async with store.session() as session:
            place_id = (
                await session.execute(
                    select(PlaceRow.id)
                    .where(func.lower(func.trim(PlaceRow.name)) == key)
                    .order_by(PlaceRow.created_at.asc(), PlaceRow.id.asc())
                    .limit(1)
                )
            ).scalar_one_or_none()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to look up place {name!r}: {e}") from e
    return await get_place(store, place_id) if place_id is not None else None


async def find_or_create_place(store: Store, name: str) -> Place:
    """Case-insensitive match on the name; creates a bare place when missing."""
    existing = await find_place_by_name(store, name)
    if existing is not None:
        return existing
    return await add_place(store, Place(name=name))


async def get_nearby_places(
    store: Store,
    latitude: float,
    longitude: float,
    radius_km: float = 5,
) -> List[Place]:
    """Places inside a lat/lon box around the point, nearest first."""
    if radius_km <= 0:
        raise ValidationError("radius_km must be positive", field="radius_km")
    r = radius_km * DEGREES_PER_KM
    dist = (PlaceRow.latitude - latitude) * (PlaceRow.latitude - latitude) + (PlaceRow.longitude - longitude) * (
        PlaceRow.longitude - longitude
    )
    q = (
        select(PlaceRow, func.count(PlaceMood.mood_id).label("mood_count"))
        .outerjoin(PlaceMood, PlaceMood.place_id == PlaceRow.id)
        .where(
            PlaceRow.latitude.isnot(None),
            PlaceRow.longitude.isnot(None),
            PlaceRow.latitude.between(latitude - r, latitude + r),
            PlaceRow.longitude.between(longitude - r, longitude + r),
        )
        .group_by(PlaceRow.id)
        .order_by(dist.asc())
    )
    try:
        async with store.session() as session:
            rows = (await session.execute(q)).all()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to query nearby places: {e}") from e
    return [_to_place(row, mood_count=int(cnt or 0)) for row, cnt in rows]


async def merge_duplicate_places(store: Store) -> int:
    """
    Places sharing a normalized name collapse into the oldest one: mood and
    food links move over, duplicates get a "[MERGED into <id>]" note.
    Returns the number of duplicates merged.
    """
    merged = 0
    with log_context("merge", "place"):
        async with store.session() as session:
            try:
                rows = (
                    await session.execute(select(PlaceRow).order_by(PlaceRow.created_at.asc(), PlaceRow.id.asc()))
                ).scalars().all()

                primary_by_name = {}
                for row in rows:
                    key = _norm_name(row.name)
                    if (row.notes or "").startswith("[MERGED into "):
                        continue
                    primary = primary_by_name.get(key)
                    if primary is None:
                        primary_by_name[key] = row
                        continue

                    await session.execute(
                        update(PlaceMood).where(PlaceMood.place_id == row.id).values(place_id=primary.id)
                    )
                    await session.execute(
                        update(FoodEntryRow).where(FoodEntryRow.place_id == row.id).values(place_id=primary.id)
                    )
                    row.notes = f"[MERGED into {primary.id}] {row.notes or ''}".rstrip()
                    row.updated_at = utcnow()
                    merged += 1
                    log.info("merged place %s into %s", row.id, primary.id)

                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to merge duplicate places: {e}") from e
    return merged
