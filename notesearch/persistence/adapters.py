"""Save and restore indices through an IndexTable, verifying checksums on load.

Loading fails closed: a missing record, a payload that cannot be deserialized, or a
checksum that does not match the restored index all resolve to None, and the caller
rebuilds the index from its documents.

No locking is done here. Callers must not save or load an index ID while the same index
is being mutated.
"""

from datetime import datetime, timezone
from typing import Any, ClassVar, Generic, TypeVar

from loguru import logger

from notesearch.lexical.service import BM25Index
from notesearch.persistence.base import IndexTable, PersistedIndexRecord, RecordExistsError
from notesearch.serialization import SERIALIZATION_VERSION
from notesearch.vector_index.hnsw_adapter import HNSWAdapter

IndexT = TypeVar("IndexT", BM25Index, HNSWAdapter)


class IndexPersistence(Generic[IndexT]):
    """Base persistence adapter for one kind of index."""

    default_index_id: ClassVar[str]
    index_name: ClassVar[str]

    def __init__(self, table: IndexTable) -> None:
        self.table = table

    def save(self, index: IndexT, index_id: str | None = None) -> PersistedIndexRecord:
        """Write the index, inserting a new record or updating the existing one."""
        index_id = index_id or self.default_index_id
        now = datetime.now(timezone.utc).isoformat()
        record = PersistedIndexRecord(
            id=index_id,
            version=SERIALIZATION_VERSION,
            checksum=index.get_index_checksum(),
            data=index.serialize(),
            metadata=self._metadata(index),
            created_at=now,
            updated_at=now,
        )

        try:
            self.table.insert(record.model_dump())
        except RecordExistsError:
            self.table.update(
                index_id,
                record.model_dump(include={"version", "checksum", "data", "metadata", "updated_at"}),
            )
            stored = self.table.find_one(index_id)
            if stored is not None:
                record = record.model_copy(update={"created_at": stored["created_at"]})
        logger.info(f"Saved {self.index_name} index {index_id!r}")
        return record

    def load(self, index_id: str | None = None) -> IndexT | None:
        """Restore an index, or return None if it is missing or fails verification."""
        index_id = index_id or self.default_index_id
        try:
            raw = self.table.find_one(index_id)
        except Exception as e:
            logger.warning(f"Failed to read {self.index_name} index {index_id!r}: {e}")
            return None
        if raw is None:
            return None

        try:
            record = PersistedIndexRecord.model_validate(raw)
            restored = self._restore(record.data)
            checksum = restored.get_index_checksum()
        except Exception as e:
            logger.error(f"Failed to deserialize {self.index_name} index {index_id!r}: {e}")
            return None

        if checksum != record.checksum:
            logger.warning(
                f"{self.index_name} index {index_id!r} checksum mismatch - data may be corrupted"
            )
            return None

        logger.info(f"Loaded {self.index_name} index {index_id!r}")
        return restored

    def delete(self, index_id: str | None = None) -> None:
        self.table.delete(index_id or self.default_index_id)

    def auto_save(self, index: IndexT, index_id: str | None = None) -> bool:
        """Save without raising. Returns whether the save succeeded."""
        try:
            self.save(index, index_id)
        except Exception as e:
            logger.error(f"Failed to auto-save {self.index_name} index: {e}")
            return False
        return True

    def _restore(self, data: dict[str, Any]) -> IndexT:
        raise NotImplementedError

    def _metadata(self, index: IndexT) -> dict[str, Any]:
        raise NotImplementedError


class BM25Persistence(IndexPersistence[BM25Index]):
    default_index_id = "bm25-main-index"
    index_name = "BM25"

    def _restore(self, data: dict[str, Any]) -> BM25Index:
        return BM25Index.deserialize(data)

    def _metadata(self, index: BM25Index) -> dict[str, Any]:
        return index.get_index_metadata().model_dump()


class HNSWPersistence(IndexPersistence[HNSWAdapter]):
    default_index_id = "hnsw-main-index"
    index_name = "HNSW"

    def _restore(self, data: dict[str, Any]) -> HNSWAdapter:
        return HNSWAdapter.deserialize(data)

    def _metadata(self, index: HNSWAdapter) -> dict[str, Any]:
        return index.get_stats()
