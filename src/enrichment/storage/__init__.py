"""Local record storage: the RecordStore protocol and an in-memory backend."""

from src.enrichment.storage.memory import InMemoryRecordStore
from src.enrichment.storage.protocols import RecordStore

__all__ = ["InMemoryRecordStore", "RecordStore"]
