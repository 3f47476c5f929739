"""
LLM Provider Factory

Factory functions to create providers and model tiers from configuration.
"""

from __future__ import annotations

from src.enrichment.config import EnrichmentConfig
from src.enrichment.llm.openai import OpenAIProvider
from src.enrichment.llm.protocols import LLMProvider, ModelTier


def create_llm_provider(config: EnrichmentConfig, model: str | None = None) -> LLMProvider:
    """
    Create an OpenAI provider.

    Args:
        config: Enrichment configuration
        model: Model name (defaults to the cheap tier model)

    Raises:
        MissingConfigError: If no OpenAI API key is configured
    """
    return OpenAIProvider(
        api_key=config.require_openai_api_key(),
        model=model or config.primary_model,
        base_url=config.openai_base_url,
        timeout_seconds=max(config.timeout_seconds, 30.0),
        max_retries=config.retry_max_attempts,
    )


def create_model_tiers(config: EnrichmentConfig) -> tuple[ModelTier, ModelTier]:
    """
    Create the cheap and fallback tiers.

    Returns:
        (cheap, fallback) tiers, both deterministic (temperature 0)
    """
    cheap = create_llm_provider(config, config.primary_model)
    fallback = create_llm_provider(config, config.fallback_model)
    return (
        ModelTier(name=cheap.model_name, model=cheap, max_tokens=config.answer_max_tokens),
        ModelTier(name=fallback.model_name, model=fallback, max_tokens=config.answer_max_tokens),
    )
