"""
Multi-item prompt format.

Items are sent as ``Item N (ID: <id>):`` blocks separated by ``---`` and
the model answers with the same headers.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

ITEM_SEPARATOR = "\n\n---\n\n"

_ITEM_PATTERN = re.compile(
    r"Item (\d+) \(ID: ([^)]+)\):\s*(.*?)(?=Item \d+ \(ID:|\Z)",
    re.DOTALL,
)


@dataclass(frozen=True)
class BatchAnswer:
    """One parsed ``Item N (ID: id): answer`` block."""

    index: int
    item_id: str
    text: str


def format_item(index: int, item_id: str, text: str) -> str:
    """Header for a 1-based item index followed by the item text."""
    return f"Item {index} (ID: {item_id}):\n{text}"


def build_batch_prompt(items: Sequence[tuple[str, str]]) -> str:
    """Join ``(item_id, text)`` pairs into one numbered prompt."""
    return ITEM_SEPARATOR.join(
        format_item(i, item_id, text) for i, (item_id, text) in enumerate(items, start=1)
    )


def parse_batch_response(content: str) -> list[BatchAnswer]:
    """
    Split a multi-item response into per-item answers.

    Trailing ``---`` separators are dropped from each answer.
    """
    answers = []
    for match in _ITEM_PATTERN.finditer(content):
        text = match.group(3).strip()
        if text.endswith("---"):
            text = text[:-3].rstrip()
        answers.append(BatchAnswer(int(match.group(1)), match.group(2).strip(), text))
    return answers
