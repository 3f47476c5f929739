"""
Directory Cache

Time-based snapshot of the full directory. A stale snapshot is preferred
over no data: a failed refresh keeps serving the previous snapshot.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from src.common.telemetry import trace_span
from src.enrichment.directory.protocols import DirectoryService
from src.enrichment.models import DirectoryRecord

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class DirectorySnapshot:
    """Records fetched at ``fetched_at`` (clock seconds)."""

    records: tuple[DirectoryRecord, ...]
    fetched_at: float


class DirectoryCache:
    """
    Caches the directory listing for ``ttl_seconds``.

    Concurrent callers share one refresh: the first caller fetches while
    the rest wait on the lock, then re-check freshness and reuse its result.

    Example:
        cache = DirectoryCache(client)
        records = await cache.get_all()  # network
        records = await cache.get_all()  # served from snapshot
    """

    def __init__(
        self,
        service: DirectoryService,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        page_size: int = 7000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._service = service
        self._ttl_seconds = ttl_seconds
        self._page_size = page_size
        self._clock = clock
        self._snapshot: DirectorySnapshot | None = None
        self._refresh_lock = asyncio.Lock()

    @property
    def service(self) -> DirectoryService:
        return self._service

    @property
    def snapshot(self) -> DirectorySnapshot | None:
        return self._snapshot

    def _is_fresh(self) -> bool:
        return (
            self._snapshot is not None
            and self._clock() - self._snapshot.fetched_at < self._ttl_seconds
        )

    async def get_all(self) -> tuple[DirectoryRecord, ...]:
        """
        Return the directory, refreshing it when stale.

        Never raises. On fetch failure the previous snapshot (however old)
        is returned, or an empty tuple if there is none.
        """
        if self._is_fresh():
            return self._snapshot.records

        async with self._refresh_lock:
            # Another caller may have refreshed while we waited
            if self._is_fresh():
                return self._snapshot.records

            with trace_span(
                "directory.fetch_all",
                {"directory.page_size": self._page_size},
            ) as span:
                started = self._clock()
                try:
                    records = await self._service.get_all_paged(limit=self._page_size)
                except Exception as e:
                    span.set_attribute("directory.fetch_failed", True)
                    if self._snapshot is not None:
                        logger.warning(
                            f"Directory refresh failed, serving stale snapshot "
                            f"of {len(self._snapshot.records)} records: {e}"
                        )
                        return self._snapshot.records
                    logger.warning(f"Directory refresh failed with no snapshot: {e}")
                    return ()

                self._snapshot = DirectorySnapshot(
                    records=tuple(records),
                    fetched_at=started,
                )
                span.set_attribute("directory.record_count", len(records))
                logger.info(f"Directory snapshot refreshed: {len(records)} records")
                return self._snapshot.records

    def invalidate(self) -> None:
        """Drop the snapshot so the next call refetches."""
        self._snapshot = None
