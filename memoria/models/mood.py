from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import BigInteger, CheckConstraint, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from memoria.db import Base
from memoria.models.mixins import TimestampMixin
from memoria.models.types import ISODateTime, JSONText, utcnow


class MoodEntryRow(TimestampMixin, Base):
    __tablename__ = "mood_entries"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_mood_entries_rating"),
        Index("mood_entries_timestamp", "entry_time"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    # epoch milliseconds; sole ordering key for pagination
    entry_time: Mapped[int] = mapped_column(BigInteger, nullable=False)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    emotion: Mapped[str] = mapped_column(String(64), nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    social_context: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    weather: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class MoodTag(Base):
    __tablename__ = "mood_tags"
    __table_args__ = (UniqueConstraint("mood_id", "tag_name", name="uq_mood_tags_mood_tag"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    mood_id: Mapped[str] = mapped_column(
        ForeignKey("mood_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tag_name: Mapped[str] = mapped_column(String(255), nullable=False)


class MoodActivity(Base):
    __tablename__ = "mood_activities"
    __table_args__ = (UniqueConstraint("mood_id", "activity_type", name="uq_mood_activities_mood_type"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    mood_id: Mapped[str] = mapped_column(
        ForeignKey("mood_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    activity_type: Mapped[str] = mapped_column(String(32), nullable=False)  # ActivityCategory value
    activity_name: Mapped[str] = mapped_column(String(16), nullable=False)  # Intensity value


class MoodMetadata(Base):
    """Structured payloads behind the free-text labels (coordinates, weather details)."""

    __tablename__ = "mood_entry_metadata"
    __table_args__ = (UniqueConstraint("mood_id", "metadata_type", name="uq_mood_metadata_mood_type"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    mood_id: Mapped[str] = mapped_column(
        ForeignKey("mood_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    metadata_type: Mapped[str] = mapped_column(String(16), nullable=False)  # location / weather
    metadata_value: Mapped[dict[str, Any]] = mapped_column(JSONText(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(ISODateTime(), default=utcnow, nullable=False)


class MoodPerson(Base):
    __tablename__ = "mood_people"
    __table_args__ = (UniqueConstraint("mood_id", "person_id", name="uq_mood_people_pair"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    mood_id: Mapped[str] = mapped_column(
        ForeignKey("mood_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    person_id: Mapped[str] = mapped_column(
        ForeignKey("people.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
