"""
In-Memory Record Store

Simple dict-based storage for unit testing and embedding.
Implements the RecordStore protocol.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from src.enrichment.exceptions import StorageWriteError
from src.enrichment.models import EntityKind, LocalRecord


class InMemoryRecordStore:
    """
    In-memory implementation of RecordStore.

    Every applied patch is appended to ``applied_patches`` so tests can
    assert exactly what was written.
    """

    def __init__(self, records: Iterable[LocalRecord] = ()):
        self._store: dict[tuple[EntityKind, str], LocalRecord] = {}
        self.applied_patches: list[tuple[EntityKind, str, dict[str, Any]]] = []
        for record in records:
            self.add(record)

    def add(self, record: LocalRecord) -> None:
        """Insert or replace a record."""
        self._store[(record.kind, record.id)] = record

    async def get(self, kind: EntityKind, record_id: str) -> LocalRecord | None:
        return self._store.get((kind, record_id))

    async def list(self, kind: EntityKind) -> list[LocalRecord]:
        return [r for (k, _), r in self._store.items() if k == kind]

    async def update(self, kind: EntityKind, record_id: str, patch: dict[str, Any]) -> LocalRecord:
        key = (kind, record_id)
        if key not in self._store:
            raise StorageWriteError(f"{kind.value} {record_id}", "record not found")
        updated = self._store[key].with_fields(patch)
        self._store[key] = updated
        self.applied_patches.append((kind, record_id, dict(patch)))
        return updated

    def clear(self) -> None:
        """Clear all data."""
        self._store.clear()
        self.applied_patches.clear()
