"""String similarity scoring for fuzzy name matching."""

from src.enrichment.matching.similarity import edit_distance, similarity

__all__ = ["edit_distance", "similarity"]
