from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from memoria.db import Base
from memoria.models.mixins import TimestampMixin
from memoria.models.types import ISODateTime, JSONText


class MemoryRow(TimestampMixin, Base):
    __tablename__ = "memories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    date: Mapped[datetime] = mapped_column(ISODateTime(), nullable=False, index=True)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # photo URIs, JSON list
    photos: Mapped[Optional[List[str]]] = mapped_column(JSONText, nullable=True)


class MemoryPerson(Base):
    __tablename__ = "memory_people"
    __table_args__ = (UniqueConstraint("memory_id", "person_id", name="uq_memory_people_pair"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    memory_id: Mapped[str] = mapped_column(
        ForeignKey("memories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    person_id: Mapped[str] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
