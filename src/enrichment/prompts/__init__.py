"""
Prompt-driven enrichment.

Template rendering, directory context, two-tier answer resolution and the
PromptEnricher service that combines them.
"""

from src.enrichment.prompts.context import DirectoryContextBuilder, find_directory_matches
from src.enrichment.prompts.service import NO_RESPONSE_MESSAGE, PromptEnricher
from src.enrichment.prompts.templates import default_field_map, render_template
from src.enrichment.prompts.two_tier import (
    TwoTierResolver,
    coerce_response,
    is_ambiguous,
    parse_number,
)

__all__ = [
    "NO_RESPONSE_MESSAGE",
    "DirectoryContextBuilder",
    "PromptEnricher",
    "TwoTierResolver",
    "coerce_response",
    "default_field_map",
    "find_directory_matches",
    "is_ambiguous",
    "parse_number",
    "render_template",
]
