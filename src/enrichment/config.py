"""
Enrichment Configuration

Configuration settings using pydantic-settings for environment variable support.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.enrichment.exceptions import MissingConfigError
from src.enrichment.models import MatchingSettings


class EnrichmentConfig(BaseSettings):
    """
    Configuration for the enrichment pipeline.

    Reads from environment variables with ENRICHMENT_ prefix.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENRICHMENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Generative Text Service
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Optional custom base URL for OpenAI-compatible endpoints",
    )
    primary_model: str = Field(
        default="gpt-4o-mini",
        description="Cheap/fast tier model tried first",
    )
    fallback_model: str = Field(
        default="gpt-4o",
        description="Stronger tier model used when the cheap answer is ambiguous",
    )
    extraction_model: str = Field(
        default="gpt-4o-mini",
        description="Model used to extract organization names from prompts",
    )
    answer_max_tokens: int = Field(
        default=200,
        ge=1,
        description="Token cap for single-record answers",
    )
    extraction_max_tokens: int = Field(
        default=100,
        ge=1,
        description="Token cap for organization-name extraction",
    )
    batch_max_tokens: int = Field(
        default=1024,
        ge=1,
        description="Token cap for multi-item batch prompts",
    )
    prompt_batch_size: int = Field(
        default=15,
        ge=1,
        description="Records per multi-item prompt",
    )
    escalate_all_column_types: bool = Field(
        default=True,
        description="Escalate unparseable number and empty text answers, not only booleans",
    )

    # Directory Service (Definitive Healthcare)
    directory_base_url: str = Field(
        default="https://api.defhc.com/v4",
        description="Directory API base URL",
    )
    directory_username: str | None = Field(
        default=None,
        description="Directory API username for the password grant",
    )
    directory_password: str | None = Field(
        default=None,
        description="Directory API password for the password grant",
    )
    directory_cache_ttl_seconds: float = Field(
        default=24 * 60 * 60,
        gt=0,
        description="Freshness window for the directory snapshot (24 hours)",
    )
    directory_page_size: int = Field(
        default=7000,
        ge=1,
        description="Maximum records fetched for the directory snapshot",
    )
    directory_search_limit: int = Field(
        default=20,
        ge=1,
        description="Maximum records returned by a live name search",
    )

    # Matching
    match_threshold: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Confidence a best match must exceed to be accepted",
    )
    contains_boost: float = Field(
        default=0.10,
        ge=0.0,
        le=1.0,
        description="Boost when the directory name contains the query",
    )
    contained_in_boost: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Boost when the query contains the directory name",
    )
    search_confidence: float = Field(
        default=0.8,
        ge=0.0,
        le=1.0,
        description="Confidence of the top live-search hit when the directory is empty",
    )
    search_alternative_confidence: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Confidence of the other live-search hits when the directory is empty",
    )
    fallback_confidence: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="Confidence of the last-resort live-search hit",
    )
    fallback_alternative_confidence: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Confidence of the other last-resort live-search hits",
    )
    max_alternatives: int = Field(
        default=3,
        ge=0,
        description="Alternative matches reported per record",
    )
    enrichment_concurrency: int = Field(
        default=1,
        ge=1,
        description="Records resolved concurrently (1 = sequential)",
    )

    # Contact Enrichment Service (Apollo)
    apollo_base_url: str = Field(
        default="https://api.apollo.io/api/v1",
        description="Contact enrichment API base URL",
    )
    apollo_api_key: str | None = Field(
        default=None,
        description="Contact enrichment API key",
    )
    apollo_batch_size: int = Field(
        default=10,
        ge=1,
        description="People per bulk-match request",
    )
    contact_first_name_threshold: float = Field(
        default=0.6,
        ge=0.0,
        le=1.0,
        description="First-name similarity a contact match must exceed",
    )
    contact_last_name_threshold: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Last-name similarity a contact match must exceed (or match exactly)",
    )

    # Resilience
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for each external call",
    )
    retry_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Maximum attempts for transient failures",
    )
    circuit_failure_threshold: int = Field(
        default=5,
        ge=1,
        description="Failures before opening circuit breaker",
    )
    circuit_recovery_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Seconds before trying to recover",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )

    def matching_settings(self) -> MatchingSettings:
        """Matching constants used by the resolver and orchestrator."""
        return MatchingSettings(
            threshold=self.match_threshold,
            contains_boost=self.contains_boost,
            contained_in_boost=self.contained_in_boost,
            search_confidence=self.search_confidence,
            search_alternative_confidence=self.search_alternative_confidence,
            fallback_confidence=self.fallback_confidence,
            fallback_alternative_confidence=self.fallback_alternative_confidence,
            max_alternatives=self.max_alternatives,
            search_limit=self.directory_search_limit,
        )

    def require_openai_api_key(self) -> str:
        """Return the OpenAI API key or raise MissingConfigError."""
        if not self.openai_api_key:
            raise MissingConfigError("openai_api_key", "Set ENRICHMENT_OPENAI_API_KEY")
        return self.openai_api_key

    def require_directory_credentials(self) -> tuple[str, str]:
        """Return (username, password) for the directory API or raise MissingConfigError."""
        if not self.directory_username:
            raise MissingConfigError("directory_username", "Set ENRICHMENT_DIRECTORY_USERNAME")
        if not self.directory_password:
            raise MissingConfigError("directory_password", "Set ENRICHMENT_DIRECTORY_PASSWORD")
        return self.directory_username, self.directory_password

    def require_apollo_api_key(self) -> str:
        """Return the contact-service API key or raise MissingConfigError."""
        if not self.apollo_api_key:
            raise MissingConfigError("apollo_api_key", "Set ENRICHMENT_APOLLO_API_KEY")
        return self.apollo_api_key


def load_config() -> EnrichmentConfig:
    """Load configuration from environment."""
    return EnrichmentConfig()
