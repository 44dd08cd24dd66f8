from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from memoria.db import Store
from memoria.enums import PersonTagType
from memoria.errors import NotFoundError, StorageError, ValidationError
from memoria.ids import new_id
from memoria.logging_setup import log_context
from memoria.models.person import PersonRow, PersonTag
from memoria.models.types import utcnow
from memoria.schemas import Person, PersonPatch
from memoria.services.moods import coerce_model, insert_children

log = logging.getLogger("memoria.people")

_SCALAR_FIELDS = (
    "name",
    "context",
    "status",
    "birth_date",
    "is_deceased",
    "deceased_date",
    "phone_number",
    "email",
    "socials",
)


def _tag_rows(person_id: str, kind: PersonTagType, values: Sequence[str]) -> List[PersonTag]:
    return [PersonTag(id=new_id(), person_id=person_id, type=kind.value, value=v) for v in values]


async def _load_tags(session: AsyncSession, ids: Sequence[str]) -> Dict[str, Dict[str, List[str]]]:
    out: Dict[str, Dict[str, List[str]]] = defaultdict(lambda: {"hobby": [], "interest": []})
    if not ids:
        return out
    rows = await session.execute(
        select(PersonTag.person_id, PersonTag.type, PersonTag.value)
        .where(PersonTag.person_id.in_(ids))
        .order_by(PersonTag.value)
    )
    for person_id, kind, value in rows.all():
        out[person_id].setdefault(kind, []).append(value)
    return out


def _to_person(row: PersonRow, tags: Dict[str, List[str]]) -> Person:
    return Person(
        id=row.id,
        name=row.name,
        context=row.context,
        status=row.status,
        birth_date=row.birth_date,
        is_deceased=row.is_deceased,
        deceased_date=row.deceased_date,
        phone_number=row.phone_number,
        email=row.email,
        socials=row.socials,
        hobbies=tags.get(PersonTagType.HOBBY.value, []),
        interests=tags.get(PersonTagType.INTEREST.value, []),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


async def add_person(store: Store, person: Union[Person, Mapping[str, Any]]) -> Person:
    person = coerce_model(Person, person)
    name = (person.name or "").strip()
    if not name:
        raise ValidationError("person name is required", field="name")

    person_id = person.id or new_id()
    with log_context("save", "person", person_id):
        async with store.session() as session:
            session.add(
                PersonRow(
                    id=person_id,
                    name=name,
                    context=person.context,
                    status=person.status,
                    birth_date=person.birth_date,
                    is_deceased=person.is_deceased,
                    # a date of death only makes sense for the deceased
                    deceased_date=person.deceased_date if person.is_deceased else None,
                    phone_number=person.phone_number,
                    email=person.email,
                    socials=person.socials,
                )
            )
            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                log.exception("person insert failed")
                raise StorageError(f"Failed to save person {person_id}: {e}") from e

            first_error = await insert_children(
                session,
                [
                    *_tag_rows(person_id, PersonTagType.HOBBY, person.hobbies),
                    *_tag_rows(person_id, PersonTagType.INTEREST, person.interests),
                ],
                what=f"person {person_id}",
            )
        if first_error is not None:
            raise StorageError(f"Person {person_id} saved with missing tags: {first_error}") from first_error

    saved = await get_person(store, person_id)
    if saved is None:
        raise StorageError(f"Person {person_id} vanished right after insert")
    return saved


async def get_person(store: Store, person_id: str) -> Optional[Person]:
    try:
        async with store.session() as session:
            row = await session.get(PersonRow, person_id)
            if row is None:
                return None
            tags = await _load_tags(session, [person_id])
            return _to_person(row, tags[person_id])
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read person {person_id}: {e}") from e


async def list_people(store: Store) -> List[Person]:
    try:
        async with store.session() as session:
            rows = (
                await session.execute(select(PersonRow).order_by(PersonRow.created_at.desc(), PersonRow.id.desc()))
            ).scalars().all()
            tags = await _load_tags(session, [r.id for r in rows])
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to list people: {e}") from e
    return [_to_person(r, tags[r.id]) for r in rows]


async def find_person_by_name(store: Store, name: str) -> Optional[Person]:
    key = (name or "").strip().lower()
    if not key:
        return None
    try:
        async with store.session() as session:
            person_id = (
                await session.execute(
                    select(PersonRow.id)
                    .where(func.lower(func.trim(PersonRow.name)) == key)
                    .order_by(PersonRow.created_at.asc(), PersonRow.id.asc())
                    .limit(1)
                )
            ).scalar_one_or_none()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to look up person {name!r}: {e}") from e
    return await get_person(store, person_id) if person_id is not None else None


async def update_person(store: Store, person_id: str, patch: Union[PersonPatch, Mapping[str, Any]]) -> Person:
    """Partial update; hobbies / interests present in the patch replace the stored ones."""
    patch = coerce_model(PersonPatch, patch)
    fields = patch.model_fields_set
    if "name" in fields and not (patch.name or "").strip():
        raise ValidationError("person name cannot be empty", field="name")
    if "is_deceased" in fields and patch.is_deceased is None:
        raise ValidationError("is_deceased cannot be cleared", field="is_deceased")

    with log_context("update", "person", person_id):
        async with store.session() as session:
            try:
                row = await session.get(PersonRow, person_id)
            except SQLAlchemyError as e:
                raise StorageError(f"Failed to read person {person_id}: {e}") from e
            if row is None:
                raise NotFoundError("person", person_id)

            for name in _SCALAR_FIELDS:
                if name in fields:
                    value = getattr(patch, name)
                    setattr(row, name, value.strip() if name == "name" else value)
            if not row.is_deceased:
                row.deceased_date = None
            row.updated_at = utcnow()

            try:
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to update person {person_id}: {e}") from e

            first_error: Optional[Exception] = None
            for kind, attr in ((PersonTagType.HOBBY, "hobbies"), (PersonTagType.INTEREST, "interests")):
                if attr not in fields:
                    continue
                try:
                    await session.execute(
                        delete(PersonTag).where(PersonTag.person_id == person_id, PersonTag.type == kind.value)
                    )
                    await session.commit()
                except SQLAlchemyError as e:
                    await session.rollback()
                    first_error = first_error or e
                    continue
                err = await insert_children(
                    session, _tag_rows(person_id, kind, getattr(patch, attr) or []), what=f"person {person_id}"
                )
                first_error = first_error or err

        if first_error is not None:
            raise StorageError(f"Person {person_id} updated with missing tags: {first_error}") from first_error

    updated = await get_person(store, person_id)
    if updated is None:
        raise NotFoundError("person", person_id)
    return updated


async def delete_person(store: Store, person_id: str) -> bool:
    with log_context("delete", "person", person_id):
        async with store.session() as session:
            try:
                res = await session.execute(delete(PersonRow).where(PersonRow.id == person_id))
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Failed to delete person {person_id}: {e}") from e
        return (res.rowcount or 0) > 0


async def find_or_create_person(store: Store, name: str) -> Person:
    """Case-insensitive match on the name; creates a bare person when missing."""
    existing = await find_person_by_name(store, name)
    if existing is not None:
        return existing
    return await add_person(store, Person(name=name))
