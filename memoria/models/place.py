from __future__ import annotations

from typing import Optional

from sqlalchemy import Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from memoria.db import Base
from memoria.models.mixins import TimestampMixin


class PlaceRow(TimestampMixin, Base):
    __tablename__ = "places"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class PlaceMood(Base):
    __tablename__ = "place_moods"
    # a mood entry sits at one place at most
    __table_args__ = (UniqueConstraint("mood_id", name="uq_place_moods_mood"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    place_id: Mapped[str] = mapped_column(
        ForeignKey("places.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    mood_id: Mapped[str] = mapped_column(
        ForeignKey("mood_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
