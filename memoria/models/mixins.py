from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Mapped, mapped_column

from memoria.models.types import ISODateTime, utcnow


class TimestampMixin:
    """created_at / updated_at as ISO-8601 UTC strings, set by the store layer."""
    created_at: Mapped[datetime] = mapped_column(
        ISODateTime(),
        default=utcnow,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        ISODateTime(),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
    )
