"""
Directory Context Builder

Augments generative prompts with directory facts about the organization
a prompt mentions. An extraction call names the organization; the name is
matched against the directory snapshot without further model calls.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from src.enrichment.directory.cache import DirectoryCache
from src.enrichment.exceptions import GenerationError
from src.enrichment.llm.protocols import LLMMessage, LLMProvider
from src.enrichment.models import DirectoryContext, DirectoryRecord
from src.enrichment.prompts import instructions
from src.enrichment.prompts.batch import ITEM_SEPARATOR, format_item, parse_batch_response

logger = logging.getLogger(__name__)

EXTRACTION_TEMPERATURE = 0.1


def find_directory_matches(
    name: str,
    directory: Sequence[DirectoryRecord],
    limit: int = 3,
) -> list[DirectoryRecord]:
    """
    Exact case-insensitive name matches, else substring matches either way.

    Returns at most ``limit`` records in directory order.
    """
    term = name.strip().lower()
    if not term:
        return []
    exact = [r for r in directory if r.name.lower() == term]
    if exact:
        return exact[:limit]
    return [r for r in directory if term in r.name.lower() or r.name.lower() in term][:limit]


def _format_revenue(value: float | None) -> str:
    if not value:
        return "Unknown"
    return "$" + f"{value:,.3f}".rstrip("0").rstrip(".")


def _record_facts(record: DirectoryRecord) -> list[str]:
    location = ", ".join(part for part in (record.city, record.state) if part)
    return [
        f"Type: {record.firm_type or 'Unknown'}",
        f"EMR Vendor (Ambulatory): {record.emr_vendor_ambulatory or 'Unknown'}",
        f"EMR Vendor (Inpatient): {record.emr_vendor_inpatient or 'Unknown'}",
        f"Net Patient Revenue: {_format_revenue(record.net_patient_revenue)}",
        f"Number of Beds: {record.num_beds or 'Unknown'}",
        f"Number of Hospitals: {record.num_hospitals or 'Unknown'}",
        f"Website: {record.website or 'Unknown'}",
        f"Location: {location or 'Unknown'}",
    ]


def format_matches(matches: Sequence[DirectoryRecord]) -> str:
    """Context block enumerating matched records for a single prompt."""
    blocks = []
    for i, record in enumerate(matches, start=1):
        facts = "\n".join(f"- {fact}" for fact in _record_facts(record))
        blocks.append(f"Match {i}: {record.name}\n{facts}")
    body = "\n\n".join(blocks)
    return f"{instructions.MATCHES_HEADER}\n\n{body}\n\n{instructions.CONTEXT_FOOTER}"


def format_batch_matches(matches_by_item: dict[str, list[DirectoryRecord]]) -> str:
    """Context block with matched records grouped by item id."""
    lines = [instructions.BATCH_CONTEXT_HEADER, ""]
    for item_id, records in matches_by_item.items():
        lines.append(f"For item ID {item_id}:")
        for record in records:
            lines.append(f"- {record.name}")
            lines.extend(f"  - {fact}" for fact in _record_facts(record))
            lines.append("")
    lines.append(instructions.BATCH_CONTEXT_FOOTER)
    return "\n".join(lines)


class DirectoryContextBuilder:
    """
    Builds directory context blocks for prompts.

    Both builders return None when the directory snapshot is empty, in
    which case prompts are sent without directory context.
    """

    def __init__(
        self,
        cache: DirectoryCache,
        extractor: LLMProvider,
        extraction_max_tokens: int = 100,
        max_matches: int = 3,
        batch_max_matches: int = 2,
    ):
        """
        Initialize the builder.

        Args:
            cache: Directory snapshot
            extractor: Provider used for organization-name extraction
            extraction_max_tokens: Token cap per extracted name
            max_matches: Matches kept for a single prompt
            batch_max_matches: Matches kept per item in a batch
        """
        self._cache = cache
        self._extractor = extractor
        self._extraction_max_tokens = extraction_max_tokens
        self._max_matches = max_matches
        self._batch_max_matches = batch_max_matches

    async def extract_name(self, prompt: str) -> str | None:
        """
        Ask the extractor for the most prominent organization in ``prompt``.

        Returns None when nothing was extracted or the call failed.
        """
        try:
            response = await self._extractor.complete(
                [
                    LLMMessage.system(instructions.EXTRACTION_PROMPT),
                    LLMMessage.user(prompt),
                ],
                temperature=EXTRACTION_TEMPERATURE,
                max_tokens=self._extraction_max_tokens,
            )
        except GenerationError as e:
            logger.warning(f"Organization extraction failed: {e}")
            return None

        lines = [line.strip() for line in response.content.splitlines() if line.strip()]
        if not lines or lines[0] == instructions.NO_EXTRACTION_SENTINEL:
            return None
        return lines[0]

    async def build(self, prompt: str, fallback_name: str | None = None) -> DirectoryContext | None:
        """
        Build the context block for a single prompt.

        Args:
            prompt: Rendered prompt
            fallback_name: Name matched when extraction finds nothing
                (typically the record's own name)

        Returns:
            DirectoryContext with matches or the neutral block, or None if
            the directory is empty
        """
        directory = await self._cache.get_all()
        if not directory:
            logger.info("Directory empty, skipping directory context")
            return None

        extracted = await self.extract_name(prompt)
        term = extracted or (fallback_name or "").strip()
        matches = find_directory_matches(term, directory, self._max_matches) if term else []

        if matches:
            logger.info(f"Directory context for '{term}': {len(matches)} match(es)")
            return DirectoryContext(
                text=format_matches(matches),
                extracted_name=extracted,
                matches=tuple(matches),
            )
        return DirectoryContext(
            text=instructions.neutral_context(len(directory)),
            extracted_name=extracted,
        )

    async def build_batch(self, items: Sequence[tuple[str, str]]) -> str | None:
        """
        Build one context block for a batch of ``(item_id, prompt)`` pairs.

        One extraction call covers the whole batch. A failed extraction
        yields the generic healthcare block.
        """
        directory = await self._cache.get_all()
        if not directory:
            return None

        extraction_prompt = ITEM_SEPARATOR.join(
            format_item(i, item_id, f"Extract company/organization names from: {prompt}")
            for i, (item_id, prompt) in enumerate(items, start=1)
        )
        try:
            response = await self._extractor.complete(
                [
                    LLMMessage.system(instructions.BATCH_EXTRACTION_PROMPT),
                    LLMMessage.user(extraction_prompt),
                ],
                temperature=EXTRACTION_TEMPERATURE,
                max_tokens=self._extraction_max_tokens * len(items),
            )
        except GenerationError as e:
            logger.warning(f"Batch organization extraction failed: {e}")
            return instructions.GENERIC_BATCH_CONTEXT

        matches_by_item: dict[str, list[DirectoryRecord]] = {}
        for answer in parse_batch_response(response.content):
            name = answer.text.splitlines()[0].strip() if answer.text else ""
            if not name or name == instructions.NO_EXTRACTION_SENTINEL:
                continue
            matches = find_directory_matches(name, directory, self._batch_max_matches)
            if matches:
                matches_by_item.setdefault(answer.item_id, []).extend(matches)

        if matches_by_item:
            return format_batch_matches(matches_by_item)
        return instructions.batch_neutral_context(len(directory))
