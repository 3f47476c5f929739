"""
Health-system resolution.

Fuzzy matching of local health-system names against the directory and
batch enrichment of local records from the matches.
"""

from src.enrichment.resolution.orchestrator import NO_MATCH_MESSAGE, EnrichmentOrchestrator
from src.enrichment.resolution.resolver import HealthSystemResolver, sanitize_query

__all__ = [
    "NO_MATCH_MESSAGE",
    "EnrichmentOrchestrator",
    "HealthSystemResolver",
    "sanitize_query",
]
