"""
Common Logging Utilities

Provides log sanitization for secrets and contact PII redaction.
"""

from src.common.logging.sanitizer import (
    SanitizingFilter,
    configure_sanitized_logging,
    get_sanitized_logger,
)

__all__ = [
    "SanitizingFilter",
    "configure_sanitized_logging",
    "get_sanitized_logger",
]
