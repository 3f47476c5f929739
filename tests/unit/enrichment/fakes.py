"""
Test doubles for the enrichment pipeline.

FakeDirectoryService stands in for the Definitive client and ScriptedLLM
for an OpenAI provider; both record their calls.
"""

from __future__ import annotations

import asyncio
from typing import Any

from src.enrichment.directory.protocols import DEFAULT_ORDER_BY
from src.enrichment.llm.protocols import LLMMessage, LLMResponse, ModelTier
from src.enrichment.models import DirectoryRecord


def make_directory_record(id: int, name: str, **fields: Any) -> DirectoryRecord:
    """Build a directory record from snake_case field names."""
    return DirectoryRecord.model_validate({"id": id, "name": name, **fields})


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeDirectoryService:
    """
    In-memory DirectoryService.

    ``records`` backs get_all_paged; ``search_results`` maps a search term
    to its hits (defaulting to a case-insensitive contains over ``records``).
    Set ``fail_fetch`` or ``fail_search`` to an exception to raise it.
    """

    def __init__(
        self,
        records: list[DirectoryRecord] | None = None,
        search_results: dict[str, list[DirectoryRecord]] | None = None,
    ):
        self.records = list(records or [])
        self.search_results = search_results
        self.fail_fetch: Exception | None = None
        self.fail_search: Exception | None = None
        self.fetch_calls = 0
        self.search_calls: list[tuple[str, int, str]] = []
        self.closed = False

    async def search_by_name_contains(
        self,
        term: str,
        limit: int = 20,
        order_by: str = DEFAULT_ORDER_BY,
    ) -> list[DirectoryRecord]:
        self.search_calls.append((term, limit, order_by))
        if self.fail_search is not None:
            raise self.fail_search
        if self.search_results is not None:
            return list(self.search_results.get(term, []))[:limit]
        return [r for r in self.records if term.lower() in r.name.lower()][:limit]

    async def get_all_paged(
        self,
        limit: int = 7000,
        order_by: str = DEFAULT_ORDER_BY,
    ) -> list[DirectoryRecord]:
        self.fetch_calls += 1
        await asyncio.sleep(0)
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return self.records[:limit]

    async def get_by_id(self, record_id: int) -> DirectoryRecord:
        return next(r for r in self.records if r.id == record_id)

    async def close(self) -> None:
        self.closed = True


class ScriptedLLM:
    """
    LLMProvider that replays scripted answers.

    Each entry of ``responses`` is either a string (returned as content) or
    an exception (raised). Once the script runs out the last entry repeats.
    """

    def __init__(self, model_name: str, responses: list[str | Exception] | None = None):
        self._model_name = model_name
        self.responses = list(responses or [""])
        self.calls: list[dict[str, Any]] = []

    @property
    def model_name(self) -> str:
        return self._model_name

    async def complete(
        self,
        messages: list[LLMMessage],
        temperature: float | None = 0.0,
        max_tokens: int = 200,
    ) -> LLMResponse:
        self.calls.append(
            {"messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        )
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return LLMResponse(content=response, model=self._model_name)

    @property
    def system_prompts(self) -> list[str]:
        return [call["messages"][0].content for call in self.calls]

    @property
    def user_prompts(self) -> list[str]:
        return [call["messages"][-1].content for call in self.calls]


def make_tier(name: str, responses: list[str | Exception] | None = None) -> ModelTier:
    return ModelTier(name=name, model=ScriptedLLM(name, responses))
