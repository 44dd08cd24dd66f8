from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from memoria.db import Base
from memoria.models.mixins import TimestampMixin
from memoria.models.types import ISODateTime


class FoodEntryRow(TimestampMixin, Base):
    __tablename__ = "food_entries"
    __table_args__ = (
        CheckConstraint("calories >= 0 AND protein >= 0 AND carbs >= 0 AND fat >= 0", name="ck_food_entries_macros"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    calories: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    protein: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    carbs: Mapped[float] = mapped_column(Float, default=0, nullable=False)
    fat: Mapped[float] = mapped_column(Float, default=0, nullable=False)

    meal_type: Mapped[str] = mapped_column(String(16), nullable=False)
    date: Mapped[datetime] = mapped_column(ISODateTime(), nullable=False, index=True)

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_uri: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    place_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("places.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    mood_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("mood_entries.id", ondelete="SET NULL"),
        nullable=True,
    )

    mood_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mood_emotion: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    food_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    is_restaurant: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    restaurant_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class FoodPerson(Base):
    __tablename__ = "food_people"
    __table_args__ = (UniqueConstraint("food_id", "person_id", name="uq_food_people_pair"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    food_id: Mapped[str] = mapped_column(
        ForeignKey("food_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    person_id: Mapped[str] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
