"""
LLM Provider Protocols

Defines the interface for generative-text providers.
Uses typing.Protocol for duck-typed interface definitions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable


class MessageRole(str, Enum):
    """Role of a message in the conversation."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class LLMMessage:
    """A message in the conversation."""

    role: MessageRole
    content: str = ""

    @classmethod
    def system(cls, content: str) -> LLMMessage:
        return cls(MessageRole.SYSTEM, content)

    @classmethod
    def user(cls, content: str) -> LLMMessage:
        return cls(MessageRole.USER, content)


@dataclass(frozen=True)
class LLMResponse:
    """
    Response from an LLM completion request.
    """

    content: str = ""
    model: str = ""
    finish_reason: str = "stop"
    usage: dict[str, int] = field(default_factory=dict)


@runtime_checkable
class LLMProvider(Protocol):
    """
    Protocol for generative-text providers.

    Implementations raise GenerationError when the provider cannot
    produce a completion.
    """

    @property
    def model_name(self) -> str:
        """Return the model name/identifier."""
        ...

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = 0.0,
        max_tokens: int = 200,
    ) -> LLMResponse:
        """
        Generate a completion for the given messages.

        Args:
            messages: Conversation history
            temperature: Sampling temperature, or None to omit it
            max_tokens: Maximum tokens in response

        Returns:
            LLMResponse with the generated content
        """
        ...


@dataclass(frozen=True)
class ModelTier:
    """Configuration for a model tier in the escalation chain."""

    name: str
    model: LLMProvider
    max_tokens: int = 200
    temperature: float | None = 0.0
