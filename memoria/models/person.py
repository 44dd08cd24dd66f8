from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from memoria.db import Base
from memoria.models.mixins import TimestampMixin
from memoria.models.types import ISODateTime


class PersonRow(TimestampMixin, Base):
    __tablename__ = "people"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # free text, classified through RelationshipContext / PersonStatus
    context: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    status: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    birth_date: Mapped[Optional[datetime]] = mapped_column(ISODateTime(), nullable=True)
    is_deceased: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deceased_date: Mapped[Optional[datetime]] = mapped_column(ISODateTime(), nullable=True)

    phone_number: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    socials: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class PersonTag(Base):
    __tablename__ = "person_tags"
    __table_args__ = (UniqueConstraint("person_id", "type", "value", name="uq_person_tags_key"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    person_id: Mapped[str] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # hobby / interest
    value: Mapped[str] = mapped_column(String(255), nullable=False)
