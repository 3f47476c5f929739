"""
Prompt Enrichment Service

Fills a column for local records from a user-authored prompt template:
render the template per record, optionally add directory context, and
resolve the answer through the two-tier resolver.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from src.enrichment.exceptions import EnrichmentError, GenerationError, ResponseValidationError
from src.enrichment.llm.protocols import LLMMessage, ModelTier
from src.enrichment.models import ColumnType, LocalRecord, PromptEnrichmentResult, ResolvedValue
from src.enrichment.prompts.batch import build_batch_prompt, parse_batch_response
from src.enrichment.prompts.context import DirectoryContextBuilder
from src.enrichment.prompts.instructions import batch_system_instruction
from src.enrichment.prompts.templates import FieldResolver, render_template
from src.enrichment.prompts.two_tier import TwoTierResolver, coerce_response

logger = logging.getLogger(__name__)

NO_RESPONSE_MESSAGE = "Failed to get a response from AI"


class PromptEnricher:
    """
    Generates column values for records from a prompt template.

    ``test_prompt`` answers for one record; ``enrich_items`` answers for
    many records, ``batch_size`` records per model call.
    """

    def __init__(
        self,
        resolver: TwoTierResolver,
        context_builder: DirectoryContextBuilder | None = None,
        batch_size: int = 15,
        batch_max_tokens: int = 1024,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._resolver = resolver
        self._context_builder = context_builder
        self._batch_size = batch_size
        self._batch_max_tokens = batch_max_tokens

    async def test_prompt(
        self,
        record: LocalRecord,
        template: str,
        column_type: ColumnType | str,
        field_resolver: FieldResolver | None = None,
        include_directory_context: bool = False,
    ) -> ResolvedValue:
        """
        Resolve the template for a single record.

        Raises:
            GenerationError: If the fallback tier fails
            ResponseValidationError: If the answer does not fit the column type
        """
        column_type = ColumnType(column_type)
        prompt = render_template(template, record, field_resolver)

        context = None
        if include_directory_context and self._context_builder is not None:
            context = await self._context_builder.build(prompt, fallback_name=record.name)

        result = await self._resolver.resolve(prompt, column_type, context.text if context else None)
        if context is None:
            return result

        match_info = f"Extraction Result: {context.extracted_name or 'none'}"
        if context.has_matches:
            match_info += "\nFinal Matches: " + ", ".join(r.name for r in context.matches)
        else:
            match_info += "\nNo matches found in the database"
        return replace(result, match_info=match_info)

    async def enrich_items(
        self,
        records: Sequence[LocalRecord],
        template: str,
        column_name: str,
        column_type: ColumnType | str,
        field_resolver: FieldResolver | None = None,
        include_directory_context: bool = False,
    ) -> list[PromptEnrichmentResult]:
        """
        Resolve the template for many records.

        Args:
            records: Records to enrich
            template: Prompt template with ``{{field}}`` placeholders
            column_name: Key of the generated value in each result's data
            column_type: Type of the target column
            field_resolver: Optional field map per record
            include_directory_context: Add directory facts to each batch

        Returns:
            One PromptEnrichmentResult per record, in input order
        """
        column_type = ColumnType(column_type)
        results: dict[int, PromptEnrichmentResult] = {}
        prepared: list[tuple[int, str, str]] = []

        for position, record in enumerate(records):
            try:
                prompt = render_template(template, record, field_resolver)
            except Exception as e:
                logger.warning(f"Error preparing item {record.id}: {e}")
                results[position] = PromptEnrichmentResult(
                    record_id=record.id,
                    success=False,
                    error=str(e) or "Error preparing item",
                )
                continue
            prepared.append((position, record.id, prompt))

        for start in range(0, len(prepared), self._batch_size):
            batch = prepared[start : start + self._batch_size]
            try:
                by_id = await self._process_batch(
                    [(record_id, prompt) for _, record_id, prompt in batch],
                    column_name,
                    column_type,
                    include_directory_context,
                )
            except EnrichmentError as e:
                logger.error(f"Error processing batch of {len(batch)} item(s): {e}")
                by_id = {
                    record_id: PromptEnrichmentResult(
                        record_id=record_id,
                        success=False,
                        error=e.message,
                    )
                    for _, record_id, _ in batch
                }
            for position, record_id, _ in batch:
                results[position] = by_id[record_id]

        succeeded = sum(1 for r in results.values() if r.success)
        logger.info(f"Prompt enrichment: {succeeded}/{len(records)} item(s) succeeded")
        return [results[position] for position in range(len(records))]

    async def _process_batch(
        self,
        items: list[tuple[str, str]],
        column_name: str,
        column_type: ColumnType,
        include_directory_context: bool,
    ) -> dict[str, PromptEnrichmentResult]:
        context = None
        if include_directory_context and self._context_builder is not None:
            context = await self._context_builder.build_batch(items)

        item_ids = {item_id for item_id, _ in items}
        answers: dict[str, tuple[str, str]] = {}
        failures: dict[str, str] = {}

        cheap = self._resolver.cheap
        try:
            content = await self._ask_batch(cheap, items, column_type, context)
        except GenerationError as e:
            logger.warning(f"Tier {cheap.name} failed for batch, escalating: {e}")
            content = ""

        ambiguous: list[tuple[str, str]] = []
        parsed = {a.item_id: a.text for a in parse_batch_response(content) if a.item_id in item_ids}
        for item_id, prompt in items:
            if item_id not in parsed and content:
                continue
            text = parsed.get(item_id, "")
            if not content or self._resolver.is_ambiguous(text, column_type):
                ambiguous.append((item_id, prompt))
            else:
                answers[item_id] = (text, cheap.name)

        if ambiguous:
            fallback = self._resolver.fallback
            logger.info(f"Processing {len(ambiguous)} ambiguous item(s) with {fallback.name}")
            try:
                content = await self._ask_batch(fallback, ambiguous, column_type, context)
            except GenerationError as e:
                logger.error(f"Tier {fallback.name} failed for batch: {e}")
                failures.update({item_id: e.message for item_id, _ in ambiguous})
            else:
                ambiguous_ids = {item_id for item_id, _ in ambiguous}
                for answer in parse_batch_response(content):
                    if answer.item_id in ambiguous_ids and answer.item_id not in answers:
                        answers[answer.item_id] = (answer.text, fallback.name)

        results: dict[str, PromptEnrichmentResult] = {}
        for item_id, _ in items:
            if item_id not in answers:
                results[item_id] = PromptEnrichmentResult(
                    record_id=item_id,
                    success=False,
                    error=failures.get(item_id, NO_RESPONSE_MESSAGE),
                )
                continue
            raw, model_used = answers[item_id]
            try:
                value = coerce_response(raw, column_type, model_used=model_used)
            except ResponseValidationError as e:
                results[item_id] = PromptEnrichmentResult(
                    record_id=item_id,
                    success=False,
                    raw=raw,
                    model_used=model_used,
                    error=e.message,
                )
                continue
            results[item_id] = PromptEnrichmentResult(
                record_id=item_id,
                success=True,
                data={column_name: value},
                model_used=model_used,
                raw=raw,
            )
        return results

    async def _ask_batch(
        self,
        tier: ModelTier,
        items: list[tuple[str, str]],
        column_type: ColumnType,
        context: str | None,
    ) -> str:
        messages = [
            LLMMessage.system(batch_system_instruction(column_type, len(items), context)),
            LLMMessage.user(build_batch_prompt(items)),
        ]
        return await self._resolver.ask(tier, messages, max_tokens=self._batch_max_tokens)
