"""
Health System Resolver

Finds the directory record that best matches a free-text organization name.

Resolution strategy:
1. Score every cached directory record by name similarity, plus boosts
   for substring containment in either direction
2. When the directory snapshot is empty, fall back to a live "contains"
   search with fixed confidences
"""

from __future__ import annotations

import logging
import re

from src.common.telemetry import get_tracer
from src.enrichment.directory.cache import DirectoryCache
from src.enrichment.directory.protocols import DEFAULT_ORDER_BY, DirectoryService
from src.enrichment.matching import similarity
from src.enrichment.models import DirectoryRecord, MatchCandidate, MatchingSettings, MatchResult

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

_UNSAFE_QUERY_CHARS = re.compile(r"[^\w\s.-]", re.ASCII)


def sanitize_query(query: str) -> str:
    """Strip characters outside word, space, dot and hyphen, then trim."""
    return _UNSAFE_QUERY_CHARS.sub("", query).strip()


class HealthSystemResolver:
    """
    Resolves organization names against the health-system directory.

    The resolver never raises for external failures: a failed live search
    counts as "no results".
    """

    def __init__(
        self,
        cache: DirectoryCache,
        service: DirectoryService,
        settings: MatchingSettings | None = None,
    ):
        """
        Initialize the resolver.

        Args:
            cache: Snapshot of the full directory
            service: Live directory, used for name searches
            settings: Matching thresholds, boosts and fixed confidences
        """
        self._cache = cache
        self._service = service
        self._settings = settings or MatchingSettings()

    @property
    def settings(self) -> MatchingSettings:
        return self._settings

    def score(self, query: str, record: DirectoryRecord) -> float:
        """Similarity of ``query`` to the record name with containment boosts, capped at 1.0."""
        score = similarity(query, record.name)
        query_lower = query.lower()
        name_lower = record.name.lower()
        if query_lower in name_lower:
            score += self._settings.contains_boost
        if name_lower in query_lower:
            score += self._settings.contained_in_boost
        return min(score, 1.0)

    async def search_remote(self, query: str) -> list[DirectoryRecord]:
        """
        Live "contains" search on the sanitized query.

        Returns an empty list when the sanitized query is empty or the
        search fails.
        """
        term = sanitize_query(query)
        if not term:
            return []
        try:
            return await self._service.search_by_name_contains(
                term,
                limit=self._settings.search_limit,
                order_by=DEFAULT_ORDER_BY,
            )
        except Exception as e:
            logger.warning(f"Directory search failed for '{term}': {e}")
            return []

    def fixed_confidence_result(
        self,
        records: list[DirectoryRecord],
        confidence: float,
        alternative_confidence: float,
    ) -> MatchResult:
        """Wrap live-search hits: first is best, next few are alternatives."""
        if not records:
            return MatchResult()
        limit = self._settings.max_alternatives
        return MatchResult(
            best=MatchCandidate(records[0], confidence),
            alternatives=tuple(
                MatchCandidate(r, alternative_confidence) for r in records[1 : limit + 1]
            ),
        )

    async def find_best_match(self, query: str) -> MatchResult:
        """
        Find the best directory match for ``query``.

        Args:
            query: Free-text organization name

        Returns:
            MatchResult with the top candidate (if any) and up to
            ``max_alternatives`` runners-up
        """
        with tracer.start_as_current_span("resolver.find_best_match") as span:
            span.set_attribute("resolver.query_length", len(query))

            if not query.strip():
                return MatchResult()

            directory = await self._cache.get_all()
            span.set_attribute("resolver.directory_size", len(directory))

            if not directory:
                logger.info(f"Directory empty, searching live for '{query}'")
                records = await self.search_remote(query)
                span.set_attribute("resolver.strategy", "remote")
                return self.fixed_confidence_result(
                    records,
                    self._settings.search_confidence,
                    self._settings.search_alternative_confidence,
                )

            candidates = [MatchCandidate(record, self.score(query, record)) for record in directory]
            # sorted() is stable, so ties keep directory order
            candidates = sorted(candidates, key=lambda c: c.confidence, reverse=True)

            result = MatchResult(
                best=candidates[0],
                alternatives=tuple(candidates[1 : self._settings.max_alternatives + 1]),
            )
            span.set_attribute("resolver.strategy", "directory")
            span.set_attribute("resolver.confidence", result.confidence)
            logger.debug(
                f"Best match for '{query}': '{result.best.record.name}' "
                f"({result.confidence:.2f})"
            )
            return result
