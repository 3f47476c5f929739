"""
Enrichment Exception Hierarchy

Structured exception types for the enrichment pipeline.
All enrichment-specific exceptions inherit from EnrichmentError.

Expected outcomes are not exceptions: a record with no acceptable directory
match is reported as a failed EnrichmentResult, and a prompt that names no
organization yields a DirectoryContext with ``extracted_name=None``.

Usage:
    from src.enrichment.exceptions import TransientFetchError

    try:
        records = await directory.get_all_paged(limit=7000)
    except TransientFetchError as e:
        logger.warning(f"Directory unavailable: {e}")
"""

from __future__ import annotations

from collections.abc import Sequence


class EnrichmentError(Exception):
    """
    Base exception for all enrichment errors.

    Attributes:
        message: Human-readable error description
        code: Optional machine-readable error code for programmatic handling
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.message = message
        self.code = code
        super().__init__(message)

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(EnrichmentError):
    """Base class for configuration-related errors."""

    pass


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, field: str, hint: str | None = None) -> None:
        message = f"Missing required configuration: '{field}'"
        if hint:
            message += f". {hint}"
        super().__init__(message, code="CONFIG_MISSING")
        self.field = field


# =============================================================================
# External Service Errors
# =============================================================================


class TransientFetchError(EnrichmentError):
    """An external call failed (network, 5xx, timeout or open circuit)."""

    def __init__(self, service: str, reason: str, timed_out: bool = False) -> None:
        super().__init__(
            f"{service} request failed: {reason}",
            code="FETCH_TIMEOUT" if timed_out else "FETCH_FAILED",
        )
        self.service = service
        self.reason = reason
        self.timed_out = timed_out


class GenerationError(EnrichmentError):
    """The generative-text service failed with no further tier to fall back to."""

    def __init__(self, model: str, reason: str) -> None:
        super().__init__(
            f"Generation with {model} failed: {reason}",
            code="GENERATION_FAILED",
        )
        self.model = model
        self.reason = reason


class ResponseValidationError(EnrichmentError):
    """A generative response could not be converted to the column type."""

    def __init__(self, column_type: str, raw: str, model_used: str | None = None) -> None:
        super().__init__(
            f"AI did not return a valid {column_type}",
            code="RESPONSE_INVALID",
        )
        self.column_type = column_type
        self.raw = raw
        self.model_used = model_used


# =============================================================================
# Storage Errors
# =============================================================================


class StorageWriteError(EnrichmentError):
    """Failed to write a patch to the local store."""

    def __init__(self, entity: str, reason: str) -> None:
        super().__init__(
            f"Failed to write {entity}: {reason}",
            code="STORAGE_WRITE",
        )
        self.entity = entity
        self.reason = reason


class MergeConflictError(EnrichmentError):
    """One or more contact merge writes failed; the merged attendee list is not returned."""

    def __init__(self, failed_ids: Sequence[str], reason: str) -> None:
        super().__init__(
            f"Failed to persist {len(failed_ids)} attendee update(s): {reason}",
            code="MERGE_CONFLICT",
        )
        self.failed_ids = tuple(failed_ids)
        self.reason = reason
