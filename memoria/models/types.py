from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy.types import TEXT, String, TypeDecorator


class JSONText(TypeDecorator):
    """
    SQLite cannot bind dict/list directly -> stored as TEXT (JSON string).
    """
    impl = TEXT
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, (dict, list)):
            return json.dumps(value, ensure_ascii=False)
        return value  # already a string

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            try:
                return json.loads(value)
            except ValueError:
                return value
        return value


class ISODateTime(TypeDecorator):
    """
    Aware datetimes stored as ISO-8601 UTC strings, so every backend keeps
    the offset and string ordering matches time ordering.
    """
    impl = String(32)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="microseconds")

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        dt = datetime.fromisoformat(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
