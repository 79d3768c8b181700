from typing import Any, Protocol

from pydantic import BaseModel


class RecordExistsError(KeyError):
    """Raised by IndexTable.insert when a record with the same ID is already stored."""


class PersistedIndexRecord(BaseModel):
    """A stored index: the serialized payload plus the checksum it must reproduce."""

    id: str
    version: int
    checksum: str
    data: dict[str, Any]
    metadata: dict[str, Any] = {}
    created_at: str
    updated_at: str


class IndexTable(Protocol):
    """Key-value table that persisted index records are written to."""

    def insert(self, record: dict[str, Any]) -> None:
        """Insert a record, raising RecordExistsError if its ID is taken."""
        ...

    def update(self, record_id: str, values: dict[str, Any]) -> None:
        """Update fields of the record with the given ID."""
        ...

    def find_one(self, record_id: str) -> dict[str, Any] | None:
        """Get the record with the given ID."""
        ...

    def delete(self, record_id: str) -> None:
        """Delete the record with the given ID, if present."""
        ...
