"""
Prompt Template Engine

Substitutes ``{{fieldName}}`` placeholders with per-record values.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from typing import Any, Union

from src.enrichment.models import LocalRecord

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

RecordLike = Union[LocalRecord, Mapping[str, Any]]
FieldResolver = Callable[[RecordLike], Mapping[str, Any]]


def default_field_map(record: RecordLike) -> dict[str, Any]:
    """Map every field of the record by its lowercased name."""
    if isinstance(record, LocalRecord):
        values = {"id": record.id, **record.fields}
    else:
        values = dict(record)
    return {str(key).lower(): value for key, value in values.items()}


def _is_absent(value: Any) -> bool:
    return value is None or value == ""


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def render_template(
    template: str,
    record: RecordLike,
    field_resolver: FieldResolver | None = None,
) -> str:
    """
    Render ``template`` for one record.

    Each placeholder is resolved by its lowercased name in the field map,
    then by its verbatim name on the record itself; an unresolved
    placeholder becomes an empty string. Substituted values are not
    expanded again.

    Example:
        >>> render_template("Is {{company}} based in {{state}}?", {"company": "Acme", "state": "OH"})
        'Is Acme based in OH?'
    """
    field_map = {
        str(key).lower(): value
        for key, value in (field_resolver or default_field_map)(record).items()
    }

    def _substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        value = field_map.get(name.lower())
        if _is_absent(value):
            value = record.get(name)
        if _is_absent(value):
            return ""
        return _format(value)

    return PLACEHOLDER_PATTERN.sub(_substitute, template)
