from __future__ import annotations


class MemoriaError(Exception):
    pass


class ValidationError(MemoriaError):
    """A required field is missing or out of range. Raised before any write."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class NotFoundError(MemoriaError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity} not found: {entity_id}")
        self.entity = entity
        self.entity_id = entity_id


class StorageError(MemoriaError):
    """Underlying store I/O or schema failure."""
