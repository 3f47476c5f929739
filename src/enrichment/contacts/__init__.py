"""
Contact enrichment.

Apollo bulk-match client and the resolver that merges its matches into
local attendee records.
"""

from src.enrichment.contacts.client import ApolloContactClient, ContactQuery
from src.enrichment.contacts.merge import ContactMergeResolver

__all__ = ["ApolloContactClient", "ContactMergeResolver", "ContactQuery"]
