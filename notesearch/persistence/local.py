import json
from pathlib import Path
from typing import Any

from notesearch.persistence.base import IndexTable, RecordExistsError


class JsonFileIndexTable(IndexTable):
    """Index table that stores all records in a single JSON file."""

    def __init__(self, filepath: str | Path) -> None:
        """Initialize JsonFileIndexTable.

        Args:
            filepath: Path to the table file. If it exists, records are loaded from it.
                     Every write rewrites the whole file.
        """
        self._filepath = Path(filepath)

        if self._filepath.exists():
            with open(self._filepath, "r", encoding="utf-8") as f:
                data = json.load(f)
            self._records: dict[str, dict[str, Any]] = data["records"]
        else:
            self._records = {}

    def insert(self, record: dict[str, Any]) -> None:
        if record["id"] in self._records:
            raise RecordExistsError(f"Record {record['id']} already exists")
        self._records[record["id"]] = json.loads(json.dumps(record))
        self._write()

    def update(self, record_id: str, values: dict[str, Any]) -> None:
        if record_id not in self._records:
            raise KeyError(f"Record {record_id} not found")
        self._records[record_id].update(json.loads(json.dumps(values)))
        self._write()

    def find_one(self, record_id: str) -> dict[str, Any] | None:
        record = self._records.get(record_id)
        return json.loads(json.dumps(record)) if record is not None else None

    def delete(self, record_id: str) -> None:
        if self._records.pop(record_id, None) is not None:
            self._write()

    def _write(self) -> None:
        self._filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(self._filepath, "w", encoding="utf-8") as f:
            json.dump({"records": self._records}, f)
