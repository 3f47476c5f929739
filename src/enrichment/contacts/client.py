"""
Apollo Contact Enrichment Client

Looks up people by name and organization through the bulk-match endpoint.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import httpx
from pydantic import ValidationError

from src.common.logging import get_sanitized_logger
from src.common.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    RetryConfig,
    retry_with_backoff,
)
from src.common.telemetry import get_tracer
from src.enrichment.exceptions import TransientFetchError
from src.enrichment.models import ContactEnrichmentResponse, PersonMatch

logger = get_sanitized_logger(__name__)
tracer = get_tracer(__name__)

SERVICE_NAME = "contacts"
BULK_MATCH_ENDPOINT = "people/bulk_match"


@dataclass(frozen=True)
class ContactQuery:
    """Identifying details of a person to enrich."""

    first_name: str
    last_name: str
    organization: str = ""

    def to_detail(self) -> dict[str, str]:
        return {
            "first_name": self.first_name,
            "last_name": self.last_name,
            "organization_name": self.organization or "",
        }


class _ServerError(Exception):
    """5xx or 429 from the contact service; safe to retry."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def _has_data(match: Any) -> bool:
    return isinstance(match, dict) and any(value is not None for value in match.values())


class ApolloContactClient:
    """
    Contact enrichment client for the Apollo API.

    Queries are sent in batches of ``batch_size``; batches run one after
    another so a large request does not burst the rate limit.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.apollo.io/api/v1",
        batch_size: int = 10,
        timeout_seconds: float = 10.0,
        circuit_failure_threshold: int = 5,
        circuit_recovery_seconds: float = 30.0,
        retry_max_attempts: int = 3,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the contact client.

        Args:
            api_key: Apollo API key (sent as ``x-api-key``)
            base_url: Apollo API base URL
            batch_size: People per bulk-match request
            timeout_seconds: Timeout for each request
            circuit_failure_threshold: Failures before opening circuit
            circuit_recovery_seconds: Seconds before trying to recover
            retry_max_attempts: Maximum attempts for transient failures
            http_client: Optional pre-built client (tests inject a mock transport)
        """
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._batch_size = batch_size
        self._timeout_seconds = timeout_seconds

        self._circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_failure_threshold,
            recovery_timeout=circuit_recovery_seconds,
            name="contacts-http",
        )
        self._retry_config = RetryConfig(
            max_attempts=retry_max_attempts,
            base_delay=0.5,
            max_delay=5.0,
            retryable_exceptions=(
                httpx.ConnectError,
                httpx.TimeoutException,
                httpx.NetworkError,
                _ServerError,
            ),
        )

        self._client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers={
                    "Content-Type": "application/json",
                    "Cache-Control": "no-cache",
                    "accept": "application/json",
                },
                timeout=httpx.Timeout(self._timeout_seconds),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _bulk_match(self, batch: Sequence[ContactQuery]) -> list[dict[str, Any]]:
        async def _make_request() -> list[dict[str, Any]]:
            client = await self._get_client()
            response = await client.post(
                f"/{BULK_MATCH_ENDPOINT}",
                json={"details": [query.to_detail() for query in batch]},
                headers={"x-api-key": self._api_key},
            )
            if response.status_code >= 500 or response.status_code == 429:
                raise _ServerError(response.status_code)
            response.raise_for_status()
            data = response.json() or {}
            return data.get("matches") or []

        try:
            return await self._circuit_breaker.call(
                retry_with_backoff,
                _make_request,
                config=self._retry_config,
            )
        except CircuitOpenError as e:
            raise TransientFetchError(SERVICE_NAME, str(e)) from e
        except httpx.TimeoutException as e:
            raise TransientFetchError(SERVICE_NAME, "request timed out", timed_out=True) from e
        except (httpx.HTTPError, _ServerError, ValueError) as e:
            raise TransientFetchError(SERVICE_NAME, str(e) or type(e).__name__) from e

    async def enrich(self, queries: Sequence[ContactQuery]) -> ContactEnrichmentResponse:
        """
        Look up every query.

        Matches that are null or carry no data are dropped.

        Args:
            queries: People to look up

        Returns:
            Aggregated response across all batches

        Raises:
            TransientFetchError: If any batch fails
        """
        if not queries:
            return ContactEnrichmentResponse()

        with tracer.start_as_current_span("contacts.enrich") as span:
            span.set_attribute("contacts.requested", len(queries))

            matches: list[PersonMatch] = []
            for start in range(0, len(queries), self._batch_size):
                batch = queries[start : start + self._batch_size]
                for raw in await self._bulk_match(batch):
                    if not _has_data(raw):
                        continue
                    try:
                        matches.append(PersonMatch.model_validate(raw))
                    except ValidationError as e:
                        logger.warning(f"Skipping malformed contact match: {e.error_count()} error(s)")

            span.set_attribute("contacts.matched", len(matches))
            logger.info(f"Contact enrichment matched {len(matches)}/{len(queries)} people")
            return ContactEnrichmentResponse(
                status="success",
                total_requested_enrichments=len(queries),
                unique_enriched_records=len(matches),
                missing_records=len(queries) - len(matches),
                credits_consumed=len(queries),
                matches=tuple(matches),
            )
