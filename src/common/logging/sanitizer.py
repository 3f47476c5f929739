"""
Log Sanitization

Redacts credentials and contact PII from log output. The enrichment
pipeline logs external payloads while debugging matches, so enriched
contact emails and the directory's OAuth credentials must never reach
log sinks verbatim.
"""

from __future__ import annotations

import logging
import re
from re import Pattern
from typing import Any

SENSITIVE_PATTERNS: list[tuple[str, Pattern[str]]] = [
    (
        "API_KEY",
        re.compile(r"(api[_-]?key|apikey)\s*[=:]\s*['\"]?[\w\-]{16,}['\"]?", re.IGNORECASE),
    ),
    # OAuth password-grant bodies and token responses from the directory service
    (
        "ACCESS_TOKEN",
        re.compile(r"(access[_-]?token)['\"]?\s*[=:]\s*['\"]?[\w\-\.]{16,}['\"]?", re.IGNORECASE),
    ),
    (
        "SECRET",
        re.compile(
            r"(secret|password|passwd|pwd)['\"]?\s*[=:]\s*['\"]?[^\s&'\"]{6,}['\"]?",
            re.IGNORECASE,
        ),
    ),
    ("OPENAI_KEY", re.compile(r"sk-[a-zA-Z0-9\-_]{20,}")),
    ("BEARER", re.compile(r"Bearer\s+[a-zA-Z0-9\-_\.]+", re.IGNORECASE)),
    ("X_API_KEY", re.compile(r"x-api-key['\"]?\s*[=:]\s*['\"]?[\w\-]{16,}['\"]?", re.IGNORECASE)),
    # Contact emails returned by people enrichment
    ("EMAIL", re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")),
]

REDACTION_PLACEHOLDER = "[REDACTED]"


class SanitizingFilter(logging.Filter):
    """
    A logging filter that redacts sensitive information from log records.

    Usage:
        logger = logging.getLogger(__name__)
        logger.addFilter(SanitizingFilter())
    """

    def __init__(
        self,
        name: str = "",
        additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
        redaction_placeholder: str = REDACTION_PLACEHOLDER,
    ):
        super().__init__(name)
        self._patterns = list(SENSITIVE_PATTERNS)
        if additional_patterns:
            self._patterns.extend(additional_patterns)
        self._placeholder = redaction_placeholder

    def filter(self, record: logging.LogRecord) -> bool:
        """Sanitize the record in place; never drops it."""
        if record.msg:
            record.msg = self.sanitize(str(record.msg))

        if record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._sanitize_value(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._sanitize_value(arg) for arg in record.args)

        return True

    def sanitize(self, text: str) -> str:
        """Return ``text`` with every sensitive pattern replaced."""
        result = text
        for pattern_name, pattern in self._patterns:
            result = pattern.sub(f"{pattern_name}={self._placeholder}", result)
        return result

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.sanitize(value)
        return value


def configure_sanitized_logging(
    level: int | str = logging.INFO,
    format_string: str | None = None,
    additional_patterns: list[tuple[str, Pattern[str]]] | None = None,
) -> None:
    """
    Configure the root logger with sanitization enabled.

    Args:
        level: Logging level (int or name such as "INFO")
        format_string: Log format string (uses default if not specified)
        additional_patterns: Extra patterns to redact
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(level=level, format=format_string)

    root_logger = logging.getLogger()
    sanitizing_filter = SanitizingFilter(additional_patterns=additional_patterns)
    root_logger.addFilter(sanitizing_filter)

    # Root-logger filters do not apply to records propagated from child loggers
    for handler in root_logger.handlers:
        handler.addFilter(sanitizing_filter)


def get_sanitized_logger(name: str) -> logging.Logger:
    """Get a logger with a SanitizingFilter attached (at most once)."""
    logger = logging.getLogger(name)

    if not any(isinstance(f, SanitizingFilter) for f in logger.filters):
        logger.addFilter(SanitizingFilter())

    return logger
