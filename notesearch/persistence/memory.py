import copy
from typing import Any

from notesearch.persistence.base import IndexTable, RecordExistsError


class InMemoryIndexTable(IndexTable):
    """Index table kept in a dict. Records are copied in and out."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}

    def insert(self, record: dict[str, Any]) -> None:
        if record["id"] in self.records:
            raise RecordExistsError(f"Record {record['id']} already exists")
        self.records[record["id"]] = copy.deepcopy(record)

    def update(self, record_id: str, values: dict[str, Any]) -> None:
        if record_id not in self.records:
            raise KeyError(f"Record {record_id} not found")
        self.records[record_id].update(copy.deepcopy(values))

    def find_one(self, record_id: str) -> dict[str, Any] | None:
        record = self.records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def delete(self, record_id: str) -> None:
        self.records.pop(record_id, None)
