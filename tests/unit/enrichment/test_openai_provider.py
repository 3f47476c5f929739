"""Tests for OpenAIProvider with a mocked SDK client."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from src.enrichment.exceptions import GenerationError
from src.enrichment.llm import LLMMessage, LLMProvider, OpenAIProvider
from src.enrichment.llm.openai import _calculate_wait_time, _extract_retry_after

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def completion(content, finish_reason="stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason=finish_reason)],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=3),
    )


def rate_limit_error(retry_after="0"):
    response = httpx.Response(429, request=REQUEST, headers={"retry-after": retry_after})
    return openai.RateLimitError("rate limited", response=response, body=None)


def make_provider(*results, max_retries=3, model="gpt-4o-mini"):
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=list(results))
    return OpenAIProvider(api_key="sk-test", model=model, max_retries=max_retries, client=client), client


MESSAGES = [LLMMessage.system("Respond with only yes or no."), LLMMessage.user("Is it?")]


class TestOpenAIProvider:
    def test_satisfies_protocol(self):
        provider, _ = make_provider()

        assert isinstance(provider, LLMProvider)
        assert provider.model_name == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_complete_request_and_response(self):
        provider, client = make_provider(completion("  yes \n"))

        response = await provider.complete(MESSAGES, temperature=0.0, max_tokens=200)

        assert response.content == "yes"
        assert response.model == "gpt-4o-mini"
        assert response.usage == {"prompt_tokens": 12, "completion_tokens": 3}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_completion_tokens"] == 200
        assert kwargs["temperature"] == 0.0
        assert kwargs["messages"] == [
            {"role": "system", "content": "Respond with only yes or no."},
            {"role": "user", "content": "Is it?"},
        ]

    @pytest.mark.asyncio
    async def test_temperature_can_be_omitted(self):
        provider, client = make_provider(completion("yes"))

        await provider.complete(MESSAGES, temperature=None)

        assert "temperature" not in client.chat.completions.create.call_args.kwargs

    @pytest.mark.asyncio
    async def test_empty_content(self):
        provider, _ = make_provider(completion(None))

        response = await provider.complete(MESSAGES)

        assert response.content == ""

    @pytest.mark.asyncio
    async def test_no_choices_raises_generation_error(self):
        empty = SimpleNamespace(choices=[], usage=None)
        provider, client = make_provider(empty, completion("yes"))

        with pytest.raises(GenerationError) as exc_info:
            await provider.complete(MESSAGES)

        assert exc_info.value.model == "gpt-4o-mini"
        assert exc_info.value.reason == "empty response"
        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_rate_limit_is_retried(self):
        provider, client = make_provider(rate_limit_error(), completion("no"))

        response = await provider.complete(MESSAGES)

        assert response.content == "no"
        assert client.chat.completions.create.await_count == 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_raise_generation_error(self):
        provider, client = make_provider(openai.APIConnectionError(request=REQUEST), max_retries=1)

        with pytest.raises(GenerationError) as exc_info:
            await provider.complete(MESSAGES)

        assert exc_info.value.model == "gpt-4o-mini"
        assert "retries exhausted" in exc_info.value.reason
        assert client.chat.completions.create.await_count == 1

    @pytest.mark.asyncio
    async def test_non_transient_error_is_not_retried(self):
        response = httpx.Response(400, request=REQUEST)
        error = openai.BadRequestError("bad request", response=response, body=None)
        provider, client = make_provider(error, completion("yes"))

        with pytest.raises(GenerationError):
            await provider.complete(MESSAGES)

        assert client.chat.completions.create.await_count == 1


class TestRetryHelpers:
    def test_extract_retry_after(self):
        assert _extract_retry_after(rate_limit_error("2.5")) == 2.5

    def test_extract_retry_after_missing(self):
        assert _extract_retry_after(ValueError("no response")) is None

    def test_wait_time_honours_retry_after(self):
        assert 7.5 <= _calculate_wait_time(0, retry_after=10.0) <= 12.5

    def test_wait_time_backs_off_and_caps(self):
        assert 1.5 <= _calculate_wait_time(1) <= 2.5
        assert _calculate_wait_time(20) <= 75.0

    def test_wait_time_floor(self):
        assert _calculate_wait_time(0, retry_after=0.0) == 0.1
