"""
OpenAI LLM Provider

Implementation of LLMProvider using the OpenAI chat completions API.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Any

import openai
from openai import AsyncOpenAI

from src.common.telemetry import get_tracer
from src.enrichment.exceptions import GenerationError
from src.enrichment.llm.protocols import LLMMessage, LLMResponse

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)


def _extract_retry_after(error: Exception) -> float | None:
    """
    Extract retry-after value from rate limit error headers.

    Args:
        error: The exception (expected to be RateLimitError)

    Returns:
        Seconds to wait, or None if not available
    """
    try:
        if hasattr(error, "response") and error.response is not None:
            headers = getattr(error.response, "headers", {})
            retry_after = headers.get("retry-after")
            if retry_after:
                return float(retry_after)
    except (ValueError, TypeError, AttributeError):
        pass
    return None


def _calculate_wait_time(
    attempt: int,
    retry_after: float | None = None,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    jitter_factor: float = 0.25,
) -> float:
    """
    Calculate wait time with retry-after header support and jitter.

    Args:
        attempt: Current retry attempt (0-indexed)
        retry_after: Seconds from retry-after header (if available)
        base_delay: Base delay for exponential backoff
        max_delay: Maximum delay cap
        jitter_factor: Random jitter as fraction of wait time

    Returns:
        Seconds to wait before next retry
    """
    if retry_after is not None:
        wait = min(retry_after, max_delay)
    else:
        wait = min(base_delay * (2**attempt), max_delay)

    jitter = wait * jitter_factor * (2 * random.random() - 1)
    return max(0.1, wait + jitter)


class OpenAIProvider:
    """
    LLM provider using OpenAI's API.

    ``complete`` retries rate limits, connection errors and server errors
    up to ``max_retries`` attempts; any remaining failure surfaces as
    GenerationError.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        client: AsyncOpenAI | None = None,
    ):
        """
        Initialize OpenAI provider.

        Args:
            api_key: OpenAI API key
            model: Model name
            base_url: Optional custom base URL for OpenAI-compatible endpoints
            timeout_seconds: Timeout per request
            max_retries: Attempts made by ``complete``
            client: Optional pre-built SDK client
        """
        self._model = model
        self._max_retries = max(1, max_retries)
        # SDK retries are disabled; complete_with_retry owns the policy
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )

    @property
    def model_name(self) -> str:
        """Return the model name."""
        return self._model

    async def _complete_once(
        self,
        messages: list[LLMMessage],
        temperature: float | None,
        max_tokens: int,
    ) -> LLMResponse:
        with tracer.start_as_current_span("llm.complete") as span:
            span.set_attribute("llm.provider", "openai")
            span.set_attribute("llm.model", self._model)
            span.set_attribute("llm.max_tokens", max_tokens)
            span.set_attribute("llm.message_count", len(messages))
            if temperature is not None:
                span.set_attribute("llm.temperature", temperature)

            kwargs: dict[str, Any] = {
                "model": self._model,
                "messages": [{"role": m.role.value, "content": m.content} for m in messages],
                "max_completion_tokens": max_tokens,
            }
            # Search-preview models reject an explicit temperature
            if temperature is not None:
                kwargs["temperature"] = temperature

            response = await self._client.chat.completions.create(**kwargs)
            if not response.choices:
                raise GenerationError(self._model, "empty response")

            choice = response.choices[0]
            content = (choice.message.content or "").strip()

            prompt_tokens = response.usage.prompt_tokens if response.usage else 0
            completion_tokens = response.usage.completion_tokens if response.usage else 0
            span.set_attribute("llm.prompt_tokens", prompt_tokens)
            span.set_attribute("llm.completion_tokens", completion_tokens)
            span.set_attribute("llm.finish_reason", choice.finish_reason or "stop")

            return LLMResponse(
                content=content,
                model=self._model,
                finish_reason=choice.finish_reason or "stop",
                usage={
                    "prompt_tokens": prompt_tokens,
                    "completion_tokens": completion_tokens,
                },
            )

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = 0.0,
        max_tokens: int = 200,
    ) -> LLMResponse:
        """
        Generate a completion using OpenAI.

        Args:
            messages: Conversation history
            temperature: Sampling temperature, or None to omit it
            max_tokens: Maximum tokens in response

        Returns:
            LLMResponse with the trimmed content

        Raises:
            GenerationError: If the request fails after retries
        """
        return await self.complete_with_retry(
            messages,
            temperature=temperature,
            max_tokens=max_tokens,
            max_retries=self._max_retries,
        )

    async def complete_with_retry(
        self,
        messages: list[LLMMessage],
        temperature: float | None = 0.0,
        max_tokens: int = 200,
        max_retries: int = 3,
    ) -> LLMResponse:
        """
        Generate a completion with automatic retry on transient errors.

        Rate limits honour the retry-after header when the API sends one.

        Raises:
            GenerationError: If all attempts fail or the error is not transient
        """
        last_error: Exception | None = None
        for attempt in range(max_retries):
            try:
                return await self._complete_once(messages, temperature, max_tokens)
            except openai.RateLimitError as e:
                last_error = e
                retry_after = _extract_retry_after(e)
                wait_time = _calculate_wait_time(attempt, retry_after)
                logger.warning(
                    f"Rate limited, retrying in {wait_time:.1f}s "
                    f"(attempt {attempt + 1}/{max_retries}, retry-after={retry_after})"
                )
            except (openai.APIConnectionError, openai.InternalServerError) as e:
                last_error = e
                wait_time = _calculate_wait_time(attempt)
                logger.warning(
                    f"{type(e).__name__}, retrying in {wait_time:.1f}s "
                    f"(attempt {attempt + 1}/{max_retries})"
                )
            except openai.OpenAIError as e:
                raise GenerationError(self._model, str(e)) from e

            if attempt < max_retries - 1:
                await asyncio.sleep(wait_time)

        raise GenerationError(
            self._model,
            f"retries exhausted: {last_error}" if last_error else "no attempts made",
        ) from last_error
