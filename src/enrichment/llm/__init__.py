"""
Generative-text providers.

Protocol, message types and the OpenAI implementation used by the
prompt enrichment pipeline.
"""

from src.enrichment.llm.factory import create_llm_provider, create_model_tiers
from src.enrichment.llm.openai import OpenAIProvider
from src.enrichment.llm.protocols import (
    LLMMessage,
    LLMProvider,
    LLMResponse,
    MessageRole,
    ModelTier,
)

__all__ = [
    "LLMMessage",
    "LLMProvider",
    "LLMResponse",
    "MessageRole",
    "ModelTier",
    "OpenAIProvider",
    "create_llm_provider",
    "create_model_tiers",
]
