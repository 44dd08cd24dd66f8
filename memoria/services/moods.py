from __future__ import annotations

import logging
import time
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memoria.config import settings
from memoria.db import Base, Store
from memoria.enums import ActivityCategory, Intensity, MetadataType
from memoria.errors import NotFoundError, StorageError, ValidationError
from memoria.ids import new_id
from memoria.logging_setup import log_context
from memoria.models.mood import MoodActivity, MoodEntryRow, MoodMetadata, MoodPerson, MoodTag
from memoria.models.place import PlaceMood
from memoria.models.types import utcnow
from memoria.schemas import MoodEntry, MoodEntryPatch, MoodStats

log = logging.getLogger("memoria.moods")

EntryLike = Union[MoodEntry, Mapping[str, Any]]
PatchLike = Union[MoodEntryPatch, Mapping[str, Any]]

_SCALAR_FIELDS = ("entry_time", "rating", "emotion", "notes", "location", "social_context", "weather")


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


def coerce_model(model_cls, data):
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {model_cls.__name__}: {e}") from e


def _check_rating(rating: Any) -> int:
    if rating is None:
        raise ValidationError("rating is required", field="rating")
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationError(f"rating must be an integer 1..5, got {rating!r}", field="rating")
    return rating


def _check_emotion(emotion: Any) -> str:
    s = (emotion or "").strip() if isinstance(emotion, str) else ""
    if not s:
        raise ValidationError("emotion is required", field="emotion")
    return s


def validate_entry(entry: MoodEntry) -> Tuple[int, str]:
    """Rating and emotion checks shared by every path that writes an entry."""
    return _check_rating(entry.rating), _check_emotion(entry.emotion)


def _check_paging(limit: int, offset: int) -> None:
    if limit < 0:
        raise ValidationError(f"limit must be >= 0, got {limit}", field="limit")
    if offset < 0:
        raise ValidationError(f"offset must be >= 0, got {offset}", field="offset")


# -------------------- child rows --------------------


def _tag_rows(mood_id: str, tags: Iterable[str]) -> List[MoodTag]:
    return [MoodTag(id=new_id(), mood_id=mood_id, tag_name=t) for t in tags]


def _activity_rows(mood_id: str, activities: Mapping[ActivityCategory, Intensity]) -> List[MoodActivity]:
    return [
        MoodActivity(id=new_id(), mood_id=mood_id, activity_type=cat.value, activity_name=lvl.value)
        for cat, lvl in activities.items()
    ]


def _metadata_rows(mood_id: str, kind: MetadataType, payload: Optional[Dict[str, Any]]) -> List[MoodMetadata]:
    if not payload:
        return []
    return [MoodMetadata(id=new_id(), mood_id=mood_id, metadata_type=kind.value, metadata_value=payload)]


def _people_rows(mood_id: str, people: Iterable[str]) -> List[MoodPerson]:
    return [MoodPerson(id=new_id(), mood_id=mood_id, person_id=pid) for pid in people]


def _place_rows(mood_id: str, place_id: Optional[str]) -> List[PlaceMood]:
    if not place_id:
        return []
    return [PlaceMood(id=new_id(), place_id=place_id, mood_id=mood_id)]


async def insert_children(session: AsyncSession, rows: Sequence[Base], *, what: str) -> Optional[Exception]:
    """
    Insert child rows one by one, each in its own commit. A failing row is
    logged and skipped so the rest still land; the first error is returned
    for the caller to surface.
    """
    first_error: Optional[Exception] = None
    for row in rows:
        session.add(row)
        try:
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            log.exception("%s: failed to insert %s row", what, row.__tablename__)
            if first_error is None:
                first_error = e
    return first_error


# -------------------- reads --------------------


async def _load_children(session: AsyncSession, ids: Sequence[str]) -> Dict[str, Dict[str, Any]]:
    out: Dict[str, Dict[str, Any]] = {
        i: {"tags": [], "activities": {}, "location_data": None, "weather_data": None, "people": [], "place_id": None}
        for i in ids
    }
    if not ids:
        return out

    tags = await session.execute(
        select(MoodTag.mood_id, MoodTag.tag_name).where(MoodTag.mood_id.in_(ids)).order_by(MoodTag.tag_name)
    )
    for mood_id, tag in tags.all():
        out[mood_id]["tags"].append(tag)

    acts = await session.execute(
        select(MoodActivity.mood_id, MoodActivity.activity_type, MoodActivity.activity_name).where(
            MoodActivity.mood_id.in_(ids)
        )
    )
    for mood_id, kind, level in acts.all():
        try:
            out[mood_id]["activities"][ActivityCategory(kind)] = Intensity(level)
        except ValueError:
            # rows written before the vocabulary was closed
            log.warning("skipping unknown activity %r=%r on %s", kind, level, mood_id)

    meta = await session.execute(
        select(MoodMetadata.mood_id, MoodMetadata.metadata_type, MoodMetadata.metadata_value).where(
            MoodMetadata.mood_id.in_(ids)
        )
    )
    for mood_id, kind, value in meta.all():
        if not isinstance(value, dict):
            log.warning("unparseable %s metadata on %s", kind, mood_id)
            continue
        if kind == MetadataType.LOCATION.value:
            out[mood_id]["location_data"] = value
        elif kind == MetadataType.WEATHER.value:
            out[mood_id]["weather_data"] = value

    people = await session.execute(
        select(MoodPerson.mood_id, MoodPerson.person_id).where(MoodPerson.mood_id.in_(ids)).order_by(MoodPerson.person_id)
    )
    for mood_id, person_id in people.all():
        out[mood_id]["people"].append(person_id)

    places = await session.execute(select(PlaceMood.mood_id, PlaceMood.place_id).where(PlaceMood.mood_id.in_(ids)))
    for mood_id, place_id in places.all():
        out[mood_id]["place_id"] = place_id

    return out


def _to_entry(row: MoodEntryRow, children: Dict[str, Any]) -> MoodEntry:
    return MoodEntry(
        id=row.id,
        entry_time=row.entry_time,
        rating=row.rating,
        emotion=row.emotion,
        notes=row.notes,
        location=row.location,
        social_context=row.social_context,
        weather=row.weather,
        location_data=children["location_data"],
        weather_data=children["weather_data"],
        tags=children["tags"],
        activities=children["activities"],
        people=children["people"],
        place_id=children["place_id"],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _materialize(session: AsyncSession, rows: Sequence[MoodEntryRow]) -> List[MoodEntry]:
    children = await _load_children(session, [r.id for r in rows])
    return [_to_entry(r, children[r.id]) for r in rows]


async def get_entry(store: Store, entry_id: str) -> Optional[MoodEntry]:
    """Entry with tags/activities reassembled, or None when the id is unknown."""
    try:
        async with store.session() as session:
            row = await session.get(MoodEntryRow, entry_id)
            if row is None:
                return None
            return (await _materialize(session, [row]))[0]
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read mood entry {entry_id}: {e}") from e


async def get_page(
    store: Store,
    limit: Optional[int] = None,
    offset: int = 0,
    *,
    newest_first: bool = True,
) -> List[MoodEntry]:
    """
    One page ordered by entry_time (newest first by default). The id is a
    tiebreaker so equal timestamps never straddle two pages inconsistently.
    """
    limit = settings.page_size if limit is None else limit
    _check_paging(limit, offset)

    if newest_first:
        order = (MoodEntryRow.entry_time.desc(), MoodEntryRow.id.desc())
    else:
        order = (MoodEntryRow.entry_time.asc(), MoodEntryRow.id.asc())

    try:
        async with store.session() as session:
            rows = (
                await session.execute(select(MoodEntryRow).order_by(*order).limit(limit).offset(offset))
            ).scalars().all()
            log.debug("page limit=%s offset=%s -> %s rows", limit, offset, len(rows))
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read mood entries: {e}") from e


async def get_entries_between(store: Store, start_ms: int, end_ms: int) -> List[MoodEntry]:
    """Entries with start_ms <= entry_time <= end_ms, newest first."""
    if end_ms < start_ms:
        raise ValidationError("end_ms must not be before start_ms", field="end_ms")
    try:
        async with store.session() as session:
            rows = (
                await session.execute(
                    select(MoodEntryRow)
                    .where(MoodEntryRow.entry_time >= start_ms, MoodEntryRow.entry_time <= end_ms)
                    .order_by(MoodEntryRow.entry_time.desc(), MoodEntryRow.id.desc())
                )
            ).scalars().all()
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read mood entries: {e}") from e


async def get_entries_by_ids(store: Store, ids: Iterable[str]) -> List[MoodEntry]:
    """Entries for the given ids, newest first; unknown ids are skipped."""
    ids = list(dict.fromkeys(i for i in ids if i))
    if not ids:
        return []
    try:
        async with store.session() as session:
            rows = (
                await session.execute(
                    select(MoodEntryRow)
                    .where(MoodEntryRow.id.in_(ids))
                    .order_by(MoodEntryRow.entry_time.desc(), MoodEntryRow.id.desc())
                )
            ).scalars().all()
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read mood entries: {e}") from e


# -------------------- writes --------------------


async def save_entry(store: Store, entry: EntryLike) -> MoodEntry:
    """
    Validate, insert the entry row, then its child rows one at a time.
    Returns the stored entry as read back from the store.
    """
    entry = coerce_model(MoodEntry, entry)
    rating, emotion = validate_entry(entry)

    entry_id = entry.id or new_id()
    entry_time = int(entry.entry_time) if entry.entry_time is not None else _now_ms()

    with log_context("save", "mood", entry_id):
        async with store.session() as session:
            session.add(
                MoodEntryRow(
                    id=entry_id,
                    entry_time=entry_time,
                    rating=rating,
                    emotion=emotion,
                    notes=entry.notes,
                    location=entry.location,
                    social_context=entry.social_context,
                    weather=entry.weather,
                )
            )
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("mood entry insert failed")
                raise StorageError(f"Failed to save mood entry {entry_id}: {e}") from e

            children: List[Base] = [
                *_tag_rows(entry_id, entry.tags),
                *_activity_rows(entry_id, entry.activities),
                *_metadata_rows(entry_id, MetadataType.LOCATION, entry.location_data),
                *_metadata_rows(entry_id, MetadataType.WEATHER, entry.weather_data),
                *_people_rows(entry_id, entry.people),
                *_place_rows(entry_id, entry.place_id),
            ]
            first_error = await insert_children(session, children, what=f"mood {entry_id}")

        if first_error is not None:
            raise StorageError(f"Mood entry {entry_id} saved with missing child rows: {first_error}") from first_error

        log.info("mood entry saved (tags=%s activities=%s)", len(entry.tags), len(entry.activities))

    saved = await get_entry(store, entry_id)
    if saved is None:
        raise StorageError(f"Mood entry {entry_id} vanished right after insert")
    return saved


async def update_entry(store: Store, entry_id: str, patch: PatchLike) -> MoodEntry:
    """
    Partial update: only fields set on the patch change. tags, activities,
    people, place_id and metadata present in the patch replace the stored
    rows (delete, then insert).
    """
    patch = coerce_model(MoodEntryPatch, patch)
    fields = patch.model_fields_set

    if "rating" in fields:
        _check_rating(patch.rating)
    if "emotion" in fields:
        _check_emotion(patch.emotion)
    if "entry_time" in fields and patch.entry_time is None:
        raise ValidationError("entry_time cannot be cleared", field="entry_time")

    with log_context("update", "mood", entry_id):
        async with store.session() as session:
            try:
                row = await session.get(MoodEntryRow, entry_id)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to read mood entry {entry_id}: {e}") from e
            if row is None:
                raise NotFoundError("mood entry", entry_id)

            for name in _SCALAR_FIELDS:
                if name in fields:
                    value = getattr(patch, name)
                    if name == "emotion":
                        value = value.strip()
                    setattr(row, name, value)
            row.updated_at = utcnow()

            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("mood entry update failed")
                raise StorageError(f"Failed to update mood entry {entry_id}: {e}") from e

            replacements = []
            if "tags" in fields:
                replacements.append((MoodTag, None, _tag_rows(entry_id, patch.tags or [])))
            if "activities" in fields:
                replacements.append((MoodActivity, None, _activity_rows(entry_id, patch.activities or {})))
            if "location_data" in fields:
                replacements.append(
                    (MoodMetadata, MetadataType.LOCATION, _metadata_rows(entry_id, MetadataType.LOCATION, patch.location_data))
                )
            if "weather_data" in fields:
                replacements.append(
                    (MoodMetadata, MetadataType.WEATHER, _metadata_rows(entry_id, MetadataType.WEATHER, patch.weather_data))
                )
            if "people" in fields:
                replacements.append((MoodPerson, None, _people_rows(entry_id, patch.people or [])))
            if "place_id" in fields:
                replacements.append((PlaceMood, None, _place_rows(entry_id, patch.place_id)))

            first_error: Optional[Exception] = None
            for model, kind, rows in replacements:
                stmt = delete(model).where(model.mood_id == entry_id)
                if kind is not None:
                    stmt = stmt.where(model.metadata_type == kind.value)
                try:
                    await session.execute(stmt)
                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    log.exception("failed to clear %s rows", model.__tablename__)
                    first_error = first_error or e
                    continue
                err = await insert_children(session, rows, what=f"mood {entry_id}")
                first_error = first_error or err

        if first_error is not None:
            raise StorageError(f"Mood entry {entry_id} updated with missing child rows: {first_error}") from first_error

        log.info("mood entry updated: %s", sorted(fields))

    updated = await get_entry(store, entry_id)
    if updated is None:
        raise NotFoundError("mood entry", entry_id)
    return updated


async def delete_entry(store: Store, entry_id: str) -> bool:
    """Remove the entry; link rows go with it (ON DELETE CASCADE)."""
    with log_context("delete", "mood", entry_id):
        async with store.session() as session:
            try:
                res = await session.execute(delete(MoodEntryRow).where(MoodEntryRow.id == entry_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("mood entry delete failed")
                raise StorageError(f"Failed to delete mood entry {entry_id}: {e}") from e
        removed = (res.rowcount or 0) > 0
        log.info("mood entry delete -> %s", removed)
        return removed


# -------------------- aggregate reader --------------------


async def get_stats(store: Store) -> MoodStats:
    try:
        async with store.session() as session:
            count, oldest, newest = (
                await session.execute(
                    select(
                        func.count(MoodEntryRow.id),
                        func.min(MoodEntryRow.entry_time),
                        func.max(MoodEntryRow.entry_time),
                    )
                )
            ).one()
            tags = (await session.execute(select(func.count(MoodTag.id)))).scalar() or 0
            activities = (await session.execute(select(func.count(MoodActivity.id)))).scalar() or 0
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read stats: {e}") from e

    return MoodStats(
        entry_count=int(count or 0),
        earliest_entry_time=int(oldest) if oldest is not None else None,
        latest_entry_time=int(newest) if newest is not None else None,
        tag_count=int(tags),
        activity_count=int(activities),
    )
