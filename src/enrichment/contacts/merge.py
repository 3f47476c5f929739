"""
Contact Merge Resolver

Matches contact-enrichment results back to local attendees by name and
merges the fields the external source actually supplied.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any

from src.common.logging import get_sanitized_logger
from src.enrichment.exceptions import MergeConflictError
from src.enrichment.matching import similarity
from src.enrichment.models import EntityKind, LocalRecord, PersonMatch
from src.enrichment.storage.protocols import RecordStore

logger = get_sanitized_logger(__name__)


class ContactMergeResolver:
    """
    Merges person matches into attendee records.

    An attendee matches a person when the last names are near-identical
    (or equal ignoring case) and the first names are similar enough to
    cover nicknames such as "Jon" for "John".
    """

    def __init__(
        self,
        first_name_threshold: float = 0.6,
        last_name_threshold: float = 0.9,
    ):
        self._first_name_threshold = first_name_threshold
        self._last_name_threshold = last_name_threshold

    def is_match(self, person: PersonMatch, attendee: LocalRecord) -> bool:
        """Name predicate between an external person and a local attendee."""
        person_last = person.last_name or ""
        person_first = person.first_name or ""
        last_matches = (
            similarity(person_last, attendee.last_name) > self._last_name_threshold
            or person_last.casefold() == attendee.last_name.casefold()
        )
        return (
            last_matches
            and similarity(person_first, attendee.first_name) > self._first_name_threshold
        )

    def find_match(
        self,
        attendee: LocalRecord,
        matches: Sequence[PersonMatch],
    ) -> PersonMatch | None:
        """First person in ``matches`` that satisfies the name predicate."""
        return next((m for m in matches if self.is_match(m, attendee)), None)

    def build_patch(self, attendee: LocalRecord, person: PersonMatch) -> dict[str, Any]:
        """External values where present, otherwise the attendee's current values."""
        organization = person.organization.name if person.organization else None
        external = {
            "email": person.email,
            "phone": person.phone,
            "title": person.headline,
            "company": organization,
            "linkedin_url": person.linkedin_url,
        }
        return {key: value or attendee.get(key) for key, value in external.items()}

    async def merge_enrichment(
        self,
        matches: Sequence[PersonMatch],
        attendees: Sequence[LocalRecord],
        store: RecordStore,
    ) -> list[LocalRecord]:
        """
        Merge ``matches`` into ``attendees`` and persist the changed ones.

        Writes run concurrently. The merged attendee list is returned only
        when every write succeeded.

        Returns:
            All attendees, with matched ones patched, in input order

        Raises:
            MergeConflictError: If any write failed
        """
        patches: dict[str, dict[str, Any]] = {}
        for attendee in attendees:
            person = self.find_match(attendee, matches)
            if person is not None:
                patches[attendee.id] = self.build_patch(attendee, person)

        if not patches:
            logger.info("No attendees matched the contact enrichment results")
            return list(attendees)

        ids = list(patches)
        outcomes = await asyncio.gather(
            *(store.update(EntityKind.ATTENDEE, record_id, patches[record_id]) for record_id in ids),
            return_exceptions=True,
        )
        errors = [(rid, o) for rid, o in zip(ids, outcomes) if isinstance(o, Exception)]
        if errors:
            failed_ids = [rid for rid, _ in errors]
            logger.error(f"Contact merge failed for {len(failed_ids)} attendee(s): {failed_ids}")
            raise MergeConflictError(failed_ids, str(errors[0][1])) from errors[0][1]

        logger.info(f"Merged contact data into {len(patches)} attendee(s)")
        return [
            attendee.with_fields(patches[attendee.id]) if attendee.id in patches else attendee
            for attendee in attendees
        ]
