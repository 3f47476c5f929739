"""
Enrichment Pipeline Factory

Wires configuration, external clients and the local store into one
EnrichmentPipeline. Each external client is built only when its
credentials are configured (or a replacement is injected); using a
component whose client is missing raises MissingConfigError.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from src.common.logging import configure_sanitized_logging
from src.enrichment.config import EnrichmentConfig, load_config
from src.enrichment.contacts import ApolloContactClient, ContactMergeResolver, ContactQuery
from src.enrichment.directory import DefinitiveDirectoryClient, DirectoryCache, DirectoryService
from src.enrichment.exceptions import MissingConfigError
from src.enrichment.llm import LLMProvider, ModelTier, create_llm_provider, create_model_tiers
from src.enrichment.models import (
    ColumnType,
    EnrichmentResult,
    EntityKind,
    LocalRecord,
    PromptEnrichmentResult,
    ResolvedValue,
)
from src.enrichment.prompts import DirectoryContextBuilder, PromptEnricher, TwoTierResolver
from src.enrichment.prompts.templates import FieldResolver
from src.enrichment.resolution import EnrichmentOrchestrator, HealthSystemResolver
from src.enrichment.storage import InMemoryRecordStore, RecordStore

logger = logging.getLogger(__name__)


class EnrichmentPipeline:
    """
    Entry point for the enrichment operations.

    Owns the directory cache and the external clients; call ``close()``
    when done to release HTTP connections.
    """

    def __init__(
        self,
        config: EnrichmentConfig,
        store: RecordStore,
        directory_cache: DirectoryCache | None = None,
        orchestrator: EnrichmentOrchestrator | None = None,
        prompt_enricher: PromptEnricher | None = None,
        contact_client: ApolloContactClient | None = None,
        merge_resolver: ContactMergeResolver | None = None,
    ):
        self.config = config
        self.store = store
        self.directory_cache = directory_cache
        self.orchestrator = orchestrator
        self.prompt_enricher = prompt_enricher
        self.contact_client = contact_client
        self.merge_resolver = merge_resolver or ContactMergeResolver(
            first_name_threshold=config.contact_first_name_threshold,
            last_name_threshold=config.contact_last_name_threshold,
        )

    def _require_orchestrator(self) -> EnrichmentOrchestrator:
        if self.orchestrator is None:
            raise MissingConfigError(
                "directory_username",
                "Set ENRICHMENT_DIRECTORY_USERNAME and ENRICHMENT_DIRECTORY_PASSWORD",
            )
        return self.orchestrator

    def _require_prompt_enricher(self) -> PromptEnricher:
        if self.prompt_enricher is None:
            raise MissingConfigError("openai_api_key", "Set ENRICHMENT_OPENAI_API_KEY")
        return self.prompt_enricher

    def _require_contact_client(self) -> ApolloContactClient:
        if self.contact_client is None:
            raise MissingConfigError("apollo_api_key", "Set ENRICHMENT_APOLLO_API_KEY")
        return self.contact_client

    async def enrich_health_systems(
        self,
        records: Sequence[LocalRecord] | None = None,
        apply: bool = False,
    ) -> list[EnrichmentResult]:
        """
        Match health systems against the directory.

        Args:
            records: Records to enrich (defaults to every health system in the store)
            apply: Persist the patches of successful results

        Returns:
            One EnrichmentResult per record
        """
        orchestrator = self._require_orchestrator()
        if records is None:
            records = await self.store.list(EntityKind.HEALTH_SYSTEM)
        results = await orchestrator.enrich_all(records)
        if apply:
            await orchestrator.apply_results(results, self.store)
        return results

    async def test_prompt(
        self,
        record: LocalRecord,
        template: str,
        column_type: ColumnType | str,
        field_resolver: FieldResolver | None = None,
        include_directory_context: bool = False,
    ) -> ResolvedValue:
        """Resolve a prompt template for one record."""
        return await self._require_prompt_enricher().test_prompt(
            record,
            template,
            column_type,
            field_resolver=field_resolver,
            include_directory_context=include_directory_context,
        )

    async def enrich_items(
        self,
        records: Sequence[LocalRecord],
        template: str,
        column_name: str,
        column_type: ColumnType | str,
        field_resolver: FieldResolver | None = None,
        include_directory_context: bool = False,
    ) -> list[PromptEnrichmentResult]:
        """Resolve a prompt template for many records in batches."""
        return await self._require_prompt_enricher().enrich_items(
            records,
            template,
            column_name,
            column_type,
            field_resolver=field_resolver,
            include_directory_context=include_directory_context,
        )

    async def merge_contacts(
        self,
        attendees: Sequence[LocalRecord] | None = None,
    ) -> list[LocalRecord]:
        """
        Enrich attendees from the contact service and persist the merged fields.

        Args:
            attendees: Attendees to enrich (defaults to every attendee in the store)

        Returns:
            All attendees, matched ones updated

        Raises:
            TransientFetchError: If the contact service fails
            MergeConflictError: If any attendee write fails
        """
        client = self._require_contact_client()
        if attendees is None:
            attendees = await self.store.list(EntityKind.ATTENDEE)
        if not attendees:
            return []

        queries = [
            ContactQuery(
                first_name=a.first_name,
                last_name=a.last_name,
                organization=str(a.get("company") or ""),
            )
            for a in attendees
        ]
        response = await client.enrich(queries)
        return await self.merge_resolver.merge_enrichment(response.matches, attendees, self.store)

    async def close(self) -> None:
        """Close the external HTTP clients."""
        for client in (self.directory_cache and self.directory_cache.service, self.contact_client):
            close = getattr(client, "close", None)
            if close is not None:
                await close()


def create_enrichment_pipeline(
    config: EnrichmentConfig | None = None,
    store: RecordStore | None = None,
    *,
    directory_service: DirectoryService | None = None,
    model_tiers: tuple[ModelTier, ModelTier] | None = None,
    extractor: LLMProvider | None = None,
    contact_client: ApolloContactClient | None = None,
    configure_logging: bool = False,
) -> EnrichmentPipeline:
    """
    Factory function to create a configured pipeline.

    Args:
        config: Configuration (loaded from the environment if omitted)
        store: Local record store (in-memory if omitted)
        directory_service: Replaces the Definitive client
        model_tiers: Replaces the (cheap, fallback) OpenAI tiers
        extractor: Replaces the OpenAI extraction provider
        contact_client: Replaces the Apollo client
        configure_logging: Install sanitized root logging at ``config.log_level``

    Returns:
        Configured EnrichmentPipeline
    """
    config = config or load_config()
    if configure_logging:
        configure_sanitized_logging(level=config.log_level.upper())
    store = store if store is not None else InMemoryRecordStore()

    if directory_service is None and config.directory_username and config.directory_password:
        username, password = config.require_directory_credentials()
        directory_service = DefinitiveDirectoryClient(
            username=username,
            password=password,
            base_url=config.directory_base_url,
            timeout_seconds=config.timeout_seconds,
            circuit_failure_threshold=config.circuit_failure_threshold,
            circuit_recovery_seconds=config.circuit_recovery_seconds,
            retry_max_attempts=config.retry_max_attempts,
        )

    cache = None
    orchestrator = None
    if directory_service is not None:
        cache = DirectoryCache(
            directory_service,
            ttl_seconds=config.directory_cache_ttl_seconds,
            page_size=config.directory_page_size,
        )
        resolver = HealthSystemResolver(cache, directory_service, config.matching_settings())
        orchestrator = EnrichmentOrchestrator(resolver, concurrency=config.enrichment_concurrency)

    if model_tiers is None and config.openai_api_key:
        model_tiers = create_model_tiers(config)
    if extractor is None and config.openai_api_key:
        extractor = create_llm_provider(config, config.extraction_model)

    prompt_enricher = None
    if model_tiers is not None:
        cheap, fallback = model_tiers
        context_builder = None
        if cache is not None and extractor is not None:
            context_builder = DirectoryContextBuilder(
                cache,
                extractor,
                extraction_max_tokens=config.extraction_max_tokens,
                max_matches=config.max_alternatives,
            )
        prompt_enricher = PromptEnricher(
            TwoTierResolver(
                cheap,
                fallback,
                escalate_all_column_types=config.escalate_all_column_types,
            ),
            context_builder=context_builder,
            batch_size=config.prompt_batch_size,
            batch_max_tokens=config.batch_max_tokens,
        )

    if contact_client is None and config.apollo_api_key:
        contact_client = ApolloContactClient(
            api_key=config.require_apollo_api_key(),
            base_url=config.apollo_base_url,
            batch_size=config.apollo_batch_size,
            timeout_seconds=config.timeout_seconds,
            circuit_failure_threshold=config.circuit_failure_threshold,
            circuit_recovery_seconds=config.circuit_recovery_seconds,
            retry_max_attempts=config.retry_max_attempts,
        )

    logger.info(
        f"Enrichment pipeline created: directory={orchestrator is not None}, "
        f"prompts={prompt_enricher is not None}, contacts={contact_client is not None}"
    )
    return EnrichmentPipeline(
        config=config,
        store=store,
        directory_cache=cache,
        orchestrator=orchestrator,
        prompt_enricher=prompt_enricher,
        contact_client=contact_client,
    )
