"""
Two-Tier Response Resolver

Asks the cheap model first and escalates to the fallback model only when
the cheap answer fails the column type's validity check.
"""

from __future__ import annotations

import logging
import re

from src.common.telemetry import get_tracer
from src.enrichment.exceptions import GenerationError, ResponseValidationError
from src.enrichment.llm.protocols import LLMMessage, ModelTier
from src.enrichment.models import ColumnType, ResolvedValue
from src.enrichment.prompts.instructions import system_instruction

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

# Leading numeric prefix, as accepted by JavaScript's parseFloat
_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

_BOOLEAN_ANSWERS = ("yes", "no")


def parse_number(raw: str) -> float | None:
    """Parse the leading number of ``raw``; None when there is none."""
    match = _NUMBER_PREFIX.match(raw)
    if not match:
        return None
    return float(match.group(0))


def is_ambiguous(raw: str, column_type: ColumnType, escalate_all_column_types: bool = True) -> bool:
    """
    Whether an answer should be re-asked at the fallback tier.

    Booleans must be exactly "yes" or "no" after trimming and lowercasing.
    With ``escalate_all_column_types``, unparseable numbers and empty text
    are ambiguous too.
    """
    if column_type == ColumnType.BOOLEAN:
        return raw.strip().lower() not in _BOOLEAN_ANSWERS
    if not escalate_all_column_types:
        return False
    if column_type == ColumnType.NUMBER:
        return parse_number(raw) is None
    return not raw.strip()


def coerce_response(
    raw: str,
    column_type: ColumnType,
    model_used: str | None = None,
) -> bool | float | str:
    """
    Convert an answer to the column type.

    Raises:
        ResponseValidationError: If a number column gets a non-numeric answer
    """
    if column_type == ColumnType.BOOLEAN:
        return raw.strip().lower() == "yes"
    if column_type == ColumnType.NUMBER:
        value = parse_number(raw)
        if value is None:
            raise ResponseValidationError(column_type.value, raw, model_used)
        return value
    return raw.strip()


class TwoTierResolver:
    """
    Resolves a prompt to a typed value using a cheap and a fallback tier.

    A cheap-tier failure is treated like an ambiguous answer and escalates;
    a fallback-tier failure raises GenerationError.
    """

    def __init__(
        self,
        cheap: ModelTier,
        fallback: ModelTier,
        escalate_all_column_types: bool = True,
    ):
        self._cheap = cheap
        self._fallback = fallback
        self._escalate_all = escalate_all_column_types

        logger.info(
            f"TwoTierResolver initialized with tiers: {cheap.name} -> {fallback.name}, "
            f"escalate_all_column_types={escalate_all_column_types}"
        )

    @property
    def cheap(self) -> ModelTier:
        return self._cheap

    @property
    def fallback(self) -> ModelTier:
        return self._fallback

    def is_ambiguous(self, raw: str, column_type: ColumnType) -> bool:
        return is_ambiguous(raw, column_type, self._escalate_all)

    async def ask(
        self,
        tier: ModelTier,
        messages: list[LLMMessage],
        max_tokens: int | None = None,
    ) -> str:
        """Send ``messages`` to one tier and return the trimmed answer."""
        response = await tier.model.complete(
            messages,
            temperature=tier.temperature,
            max_tokens=max_tokens or tier.max_tokens,
        )
        return response.content.strip()

    async def resolve(
        self,
        prompt: str,
        column_type: ColumnType,
        system_context: str | None = None,
    ) -> ResolvedValue:
        """
        Resolve ``prompt`` to a value of ``column_type``.

        Args:
            prompt: Rendered user prompt
            column_type: Type of the target column
            system_context: Optional block appended to the system instruction

        Returns:
            ResolvedValue with the typed value and the tier that produced it

        Raises:
            GenerationError: If the fallback tier fails
            ResponseValidationError: If the final answer cannot be converted
        """
        with tracer.start_as_current_span("prompt.resolve") as span:
            span.set_attribute("prompt.column_type", column_type.value)
            span.set_attribute("prompt.has_context", system_context is not None)

            messages = [
                LLMMessage.system(system_instruction(column_type, system_context)),
                LLMMessage.user(prompt),
            ]

            tier = self._cheap
            raw: str | None = None
            try:
                raw = await self.ask(tier, messages)
            except GenerationError as e:
                logger.warning(f"Tier {tier.name} failed, escalating: {e}")

            escalated = raw is None or self.is_ambiguous(raw, column_type)
            if escalated:
                if raw is not None:
                    logger.info(
                        f"Escalating from {self._cheap.name} to {self._fallback.name} "
                        f"(ambiguous {column_type.value} answer: {raw[:50]!r})"
                    )
                tier = self._fallback
                raw = await self.ask(tier, messages)

            span.set_attribute("prompt.model_used", tier.name)
            span.set_attribute("prompt.escalated", escalated)

            value = coerce_response(raw, column_type, model_used=tier.name)
            return ResolvedValue(value=value, model_used=tier.name, raw=raw, escalated=escalated)
