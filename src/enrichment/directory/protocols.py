"""
Directory Service Protocol

Defines the interface to the external health-system directory.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from src.enrichment.models import DirectoryRecord

DEFAULT_ORDER_BY = "Name asc"


@runtime_checkable
class DirectoryService(Protocol):
    """
    Protocol for directory lookups.

    Implementations raise TransientFetchError when the service cannot be
    reached; callers decide whether to fall back.
    """

    async def search_by_name_contains(
        self,
        term: str,
        limit: int = 20,
        order_by: str = DEFAULT_ORDER_BY,
    ) -> list[DirectoryRecord]:
        """
        Find records whose name contains ``term``.

        Args:
            term: Already-sanitized search term
            limit: Maximum records to return
            order_by: OData ordering clause

        Returns:
            Matching records, at most ``limit``
        """
        ...

    async def get_all_paged(
        self,
        limit: int = 7000,
        order_by: str = DEFAULT_ORDER_BY,
    ) -> list[DirectoryRecord]:
        """Fetch up to ``limit`` records in ``order_by`` order."""
        ...

    async def get_by_id(self, record_id: int) -> DirectoryRecord:
        """Fetch a single record by its directory id."""
        ...
