"""
Memories: dated, titled moments with optional description, place text,
photos, and the people who shared them.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memoria.config import settings
from memoria.db import Store
from memoria.errors import NotFoundError, StorageError, ValidationError
from memoria.ids import new_id
from memoria.logging_setup import log_context
from memoria.models.memory import MemoryPerson, MemoryRow
from memoria.models.types import utcnow
from memoria.schemas import Memory, MemoryPatch
from memoria.services.moods import coerce_model, insert_children

log = logging.getLogger("memoria.memories")

_SCALAR_FIELDS = ("title", "description", "date", "location", "photos")


def _people_rows(memory_id: str, people: Iterable[str]) -> List[MemoryPerson]:
    return [MemoryPerson(id=new_id(), memory_id=memory_id, person_id=pid) for pid in people]


async def _load_people(session: AsyncSession, ids: Sequence[str]) -> Dict[str, List[str]]:
    out: Dict[str, List[str]] = defaultdict(list)
    if not ids:
        return out
    rows = await session.execute(
        select(MemoryPerson.memory_id, MemoryPerson.person_id)
        .where(MemoryPerson.memory_id.in_(ids))
        .order_by(MemoryPerson.person_id)
    )
    for memory_id, person_id in rows.all():
        out[memory_id].append(person_id)
    return out


def _to_memory(row: MemoryRow, people: List[str]) -> Memory:
    return Memory(
        id=row.id,
        title=row.title,
        description=row.description,
        date=row.date,
        location=row.location,
        people=people,
        photos=row.photos or [],
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def _materialize(session: AsyncSession, rows: Sequence[MemoryRow]) -> List[Memory]:
    people = await _load_people(session, [r.id for r in rows])
    return [_to_memory(r, people[r.id]) for r in rows]


async def add_memory(store: Store, memory: Union[Memory, Mapping[str, Any]]) -> Memory:
    memory = coerce_model(Memory, memory)
    title = (memory.title or "").strip()
    if not title:
        raise ValidationError("memory title is required", field="title")

    memory_id = memory.id or new_id()
    with log_context("save", "memory", memory_id):
        async with store.session() as session:
            session.add(
                MemoryRow(
                    id=memory_id,
                    title=title,
                    description=memory.description,
                    date=memory.date or utcnow(),
                    location=memory.location,
                    photos=memory.photos,
                )
            )
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("memory insert failed")
                raise StorageError(f"Failed to save memory {memory_id}: {e}") from e

            first_error = await insert_children(
                session, _people_rows(memory_id, memory.people), what=f"memory {memory_id}"
            )
        if first_error is not None:
            raise StorageError(f"Memory {memory_id} saved with missing people: {first_error}") from first_error

        log.info("memory saved (people=%s photos=%s)", len(memory.people), len(memory.photos))

    saved = await get_memory(store, memory_id)
    if saved is None:
        raise StorageError(f"Memory {memory_id} vanished right after insert")
    return saved


async def get_memory(store: Store, memory_id: str) -> Optional[Memory]:
    try:
        async with store.session() as session:
            row = await session.get(MemoryRow, memory_id)
            if row is None:
                return None
            return (await _materialize(session, [row]))[0]
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read memory {memory_id}: {e}") from e


async def list_memories(store: Store, limit: Optional[int] = None, offset: int = 0) -> List[Memory]:
    """Newest memory date first."""
    limit = settings.page_size if limit is None else limit
    if limit < 0 or offset < 0:
        raise ValidationError("limit and offset must be >= 0")
    try:
        async with store.session() as session:
            rows = (
                await session.execute(
                    select(MemoryRow)
                    .order_by(MemoryRow.date.desc(), MemoryRow.id.desc())
                    .limit(limit)
                    .offset(offset)
                )
            ).scalars().all()
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read memories: {e}") from e


async def get_memories_for_person(store: Store, person_id: str) -> List[Memory]:
    """Memories shared with one person, newest first."""
    try:
        async with store.session() as session:
            rows = (
                await session.execute(
                    select(MemoryRow)
                    .join(MemoryPerson, MemoryPerson.memory_id == MemoryRow.id)
                    .where(MemoryPerson.person_id == person_id)
                    .order_by(MemoryRow.date.desc(), MemoryRow.id.desc())
                )
            ).scalars().all()
            return await _materialize(session, rows)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read memories for person {person_id}: {e}") from e


async def update_memory(store: Store, memory_id: str, patch: Union[MemoryPatch, Mapping[str, Any]]) -> Memory:
    """Partial update; people present in the patch replace the stored links."""
    patch = coerce_model(MemoryPatch, patch)
    fields = patch.model_fields_set
    if "title" in fields and not (patch.title or "").strip():
        raise ValidationError("memory title cannot be empty", field="title")
    if "date" in fields and patch.date is None:
        raise ValidationError("date cannot be cleared", field="date")

    with log_context("update", "memory", memory_id):
        async with store.session() as session:
            try:
                row = await session.get(MemoryRow, memory_id)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to read memory {memory_id}: {e}") from e
            if row is None:
                raise NotFoundError("memory", memory_id)

            for name in _SCALAR_FIELDS:
                if name in fields:
                    value = getattr(patch, name)
                    setattr(row, name, value.strip() if name == "title" else value)
            row.updated_at = utcnow()

            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("memory update failed")
                raise StorageError(f"Failed to update memory {memory_id}: {e}") from e

            first_error: Optional[Exception] = None
            if "people" in fields:
                try:
                    await session.execute(delete(MemoryPerson).where(MemoryPerson.memory_id == memory_id))
                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    first_error = e
                else:
                    first_error = await insert_children(
                        session, _people_rows(memory_id, patch.people or []), what=f"memory {memory_id}"
                    )

        if first_error is not None:
            raise StorageError(f"Memory {memory_id} updated with missing people: {first_error}") from first_error

        log.info("memory updated: %s", sorted(fields))

    updated = await get_memory(store, memory_id)
    if updated is None:
        raise NotFoundError("memory", memory_id)
    return updated


async def delete_memory(store: Store, memory_id: str) -> bool:
    with log_context("delete", "memory", memory_id):
        async with store.session() as session:
            try:
                res = await session.execute(delete(MemoryRow).where(MemoryRow.id == memory_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to delete memory {memory_id}: {e}") from e
        return (res.rowcount or 0) > 0
