from notesearch.persistence.adapters import BM25Persistence, HNSWPersistence, IndexPersistence
from notesearch.persistence.base import IndexTable, RecordExistsError
from notesearch.persistence.local import JsonFileIndexTable
from notesearch.persistence.memory import InMemoryIndexTable

__all__ = [
    "BM25Persistence",
    "HNSWPersistence",
    "InMemoryIndexTable",
    "IndexPersistence",
    "IndexTable",
    "JsonFileIndexTable",
    "RecordExistsError",
]
