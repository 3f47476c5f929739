"""
Record Store Protocol

Interface to the caller-owned store of local records. Updates are keyed by
kind and id and carry partial-field patches.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from src.enrichment.models import EntityKind, LocalRecord


@runtime_checkable
class RecordStore(Protocol):
    """Protocol for local record storage."""

    async def get(self, kind: EntityKind, record_id: str) -> LocalRecord | None:
        """Fetch a single record, or None if it does not exist."""
        ...

    async def list(self, kind: EntityKind) -> list[LocalRecord]:
        """List all records of a kind."""
        ...

    async def update(self, kind: EntityKind, record_id: str, patch: dict[str, Any]) -> LocalRecord:
        """
        Apply a partial-field patch.

        Returns:
            The updated record

        Raises:
            StorageWriteError: If the record does not exist or the write fails
        """
        ...
