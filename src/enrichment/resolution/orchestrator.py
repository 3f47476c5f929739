"""
Enrichment Orchestrator

Drives the resolver over a batch of local health systems and turns each
outcome into an EnrichmentResult. A failing record never aborts the batch.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from src.common.telemetry import trace_span
from src.enrichment.exceptions import EnrichmentError, StorageWriteError, TransientFetchError
from src.enrichment.models import (
    AlternativeMatch,
    EnrichmentResult,
    EntityKind,
    FailureReason,
    HealthSystemPatch,
    LocalRecord,
    MatchCandidate,
    MatchResult,
)
from src.enrichment.resolution.resolver import HealthSystemResolver
from src.enrichment.storage.protocols import RecordStore

logger = logging.getLogger(__name__)

NO_MATCH_MESSAGE = "No matching data found"


class EnrichmentOrchestrator:
    """
    Enriches local health systems from the directory.

    Records are resolved with at most ``concurrency`` in flight; the output
    order always matches the input order.
    """

    def __init__(self, resolver: HealthSystemResolver, concurrency: int = 1):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._resolver = resolver
        self._concurrency = concurrency

    async def enrich_all(self, records: Sequence[LocalRecord]) -> list[EnrichmentResult]:
        """
        Enrich every record.

        Args:
            records: Local health systems

        Returns:
            One EnrichmentResult per input record, in input order
        """
        if not records:
            return []

        with trace_span(
            "enrichment.enrich_all",
            {"enrichment.record_count": len(records), "enrichment.concurrency": self._concurrency},
        ) as span:
            semaphore = asyncio.Semaphore(self._concurrency)

            async def _bounded(record: LocalRecord) -> EnrichmentResult:
                async with semaphore:
                    return await self.enrich_one(record)

            results = await asyncio.gather(*(_bounded(r) for r in records))

            succeeded = sum(1 for r in results if r.success)
            span.set_attribute("enrichment.success_count", succeeded)
            logger.info(f"Enriched {succeeded}/{len(results)} health systems")
            return list(results)

    async def enrich_one(self, record: LocalRecord) -> EnrichmentResult:
        """Enrich a single record; failures are returned, not raised."""
        if record.kind != EntityKind.HEALTH_SYSTEM:
            return EnrichmentResult(
                record_id=record.id,
                record_name=record.name,
                success=False,
                error=f"Cannot enrich {record.kind.value} records from the directory",
                failure_reason=FailureReason.UNSUPPORTED_KIND,
            )

        try:
            return await self._resolve(record)
        except TransientFetchError as e:
            logger.warning(f"Directory fetch failed for '{record.name}': {e}")
            return self._failure(record, e.message, FailureReason.FETCH_FAILED)
        except Exception as e:
            logger.error(f"Error enriching '{record.name}': {e}")
            message = e.message if isinstance(e, EnrichmentError) else str(e)
            return self._failure(record, message or "Unknown error occurred", FailureReason.ERROR)

    async def _resolve(self, record: LocalRecord) -> EnrichmentResult:
        settings = self._resolver.settings
        match = await self._resolver.find_best_match(record.name)

        if match.best is not None and match.confidence > settings.threshold:
            logger.info(
                f"Match found for '{record.name}': '{match.best.record.name}' "
                f"(confidence: {match.confidence:.2f})"
            )
            return self._success(record, match)

        # Last resort: live search with fixed confidences
        hits = await self._resolver.search_remote(record.name)
        if hits:
            logger.info(f"Live search match for '{record.name}': '{hits[0].name}'")
            fallback = self._resolver.fixed_confidence_result(
                hits,
                settings.fallback_confidence,
                settings.fallback_alternative_confidence,
            )
            return self._success(record, fallback)

        logger.info(f"No match found for '{record.name}'")
        return EnrichmentResult(
            record_id=record.id,
            record_name=record.name,
            success=False,
            confidence=0.0,
            alternatives=self._alternatives(match.alternatives),
            error=NO_MATCH_MESSAGE,
            failure_reason=FailureReason.NO_MATCH,
        )

    def _success(self, record: LocalRecord, match: MatchResult) -> EnrichmentResult:
        return EnrichmentResult(
            record_id=record.id,
            record_name=record.name,
            success=True,
            patch=HealthSystemPatch.from_record(match.best.record),
            confidence=match.confidence,
            alternatives=self._alternatives(match.alternatives),
        )

    def _failure(
        self,
        record: LocalRecord,
        message: str,
        reason: FailureReason,
    ) -> EnrichmentResult:
        return EnrichmentResult(
            record_id=record.id,
            record_name=record.name,
            success=False,
            error=message,
            failure_reason=reason,
        )

    def _alternatives(self, candidates: Sequence[MatchCandidate]) -> tuple[AlternativeMatch, ...]:
        limit = self._resolver.settings.max_alternatives
        return tuple(AlternativeMatch.from_candidate(c) for c in candidates[:limit])

    async def apply_results(
        self,
        results: Sequence[EnrichmentResult],
        store: RecordStore,
    ) -> list[str]:
        """
        Persist the patch of every successful result.

        Args:
            results: Output of enrich_all
            store: Local record store

        Returns:
            Ids of the records that were updated

        Raises:
            StorageWriteError: If a write fails; earlier writes are kept
        """
        persisted: list[str] = []
        for result in results:
            if not result.success or result.patch is None:
                continue
            try:
                await store.update(EntityKind.HEALTH_SYSTEM, result.record_id, result.patch.to_dict())
            except StorageWriteError:
                logger.error(
                    f"Persisted {len(persisted)} health system(s) before a write failed "
                    f"for {result.record_id}"
                )
                raise
            persisted.append(result.record_id)
        logger.info(f"Persisted {len(persisted)} enriched health system(s)")
        return persisted
