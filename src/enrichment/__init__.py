"""
Health-system enrichment pipeline.

Fuzzy resolution of local health systems against the Definitive Healthcare
directory, prompt-driven column enrichment with two-tier model escalation,
and contact enrichment merged back into attendee records.

Usage:
    from src.enrichment import create_enrichment_pipeline

    pipeline = create_enrichment_pipeline()
    results = await pipeline.enrich_health_systems(records)
"""

from src.enrichment.config import EnrichmentConfig, load_config
from src.enrichment.exceptions import (
    ConfigurationError,
    EnrichmentError,
    GenerationError,
    MergeConflictError,
    MissingConfigError,
    ResponseValidationError,
    StorageWriteError,
    TransientFetchError,
)
from src.enrichment.factory import EnrichmentPipeline, create_enrichment_pipeline
from src.enrichment.models import (
    ColumnType,
    EnrichmentResult,
    EntityKind,
    FailureReason,
    LocalRecord,
    PromptEnrichmentResult,
    ResolvedValue,
)

__all__ = [
    "ColumnType",
    "ConfigurationError",
    "EnrichmentConfig",
    "EnrichmentError",
    "EnrichmentPipeline",
    "EnrichmentResult",
    "EntityKind",
    "FailureReason",
    "GenerationError",
    "LocalRecord",
    "MergeConflictError",
    "MissingConfigError",
    "PromptEnrichmentResult",
    "ResolvedValue",
    "ResponseValidationError",
    "StorageWriteError",
    "TransientFetchError",
    "create_enrichment_pipeline",
    "load_config",
]
