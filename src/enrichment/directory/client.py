"""
Definitive Healthcare Directory Client

Implements the DirectoryService protocol over the directory's OData API.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from src.common.resilience import (
    CircuitBreaker,
    CircuitOpenError,
    RetryConfig,
    retry_with_backoff,
)
from src.common.telemetry import get_tracer
from src.enrichment.directory.protocols import DEFAULT_ORDER_BY
from src.enrichment.exceptions import TransientFetchError
from src.enrichment.models import DirectoryRecord

logger = logging.getLogger(__name__)
tracer = get_tracer(__name__)

SERVICE_NAME = "directory"
HOSPITALS_ENDPOINT = "odata-v4/Hospitals"


class _ServerError(Exception):
    """5xx or 429 from the directory; safe to retry."""

    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def _escape_odata(term: str) -> str:
    return term.replace("'", "''")


class DefinitiveDirectoryClient:
    """
    Directory client for the Definitive Healthcare API.

    Features:
    - Password-grant token, cached until the API answers 401
    - Circuit breaker: Fails fast when the directory is unhealthy
    - Retry with backoff: Handles connection errors, timeouts and 5xx
    - Client-side cap on result size
    """

    def __init__(
        self,
        username: str,
        password: str,
        base_url: str = "https://api.defhc.com/v4",
        timeout_seconds: float = 10.0,
        circuit_failure_threshold: int = 5,
        circuit_recovery_seconds: float = 30.0,
        retry_max_attempts: int = 3,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the directory client.

        Args:
            username: Directory API username
            password: Directory API password
            base_url: Directory API base URL
            timeout_seconds: Timeout for each request
            circuit_failure_threshold: Failures before opening circuit
            circuit_recovery_seconds: Seconds before trying to recover
            retry_max_attempts: Maximum attempts for transient failures
            http_client: Optional pre-built client (tests inject a mock transport)
        """
        self._base_url = base_url.rstrip("/")
        self._username = username
        self._password = password
        self._timeout_seconds = timeout_seconds
        self._token: str | None = None

        self._circuit_breaker = CircuitBreaker(
            failure_threshold=circuit_failure_threshold,
            recovery_timeout=circuit_recovery_seconds,
            name="directory-http",
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
                headers={"accept": "application/json"},
                timeout=httpx.Timeout(self._timeout_seconds),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _get_token(self) -> str:
        if self._token is None:
            client = await self._get_client()
            response = await client.post(
                "/token",
                data={
                    "grant_type": "password",
                    "username": self._username,
                    "password": self._password,
                },
            )
            self._raise_for_status(response)
            self._token = response.json()["access_token"]
            logger.debug("Obtained directory access token")
        return self._token

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 500 or response.status_code == 429:
            raise _ServerError(response.status_code)
        response.raise_for_status()

    async def _get(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """GET an endpoint, refreshing the token once on 401."""

        async def _make_request() -> Any:
            client = await self._get_client()
            for attempt in range(2):
                token = await self._get_token()
                response = await client.get(
                    f"/{endpoint}",
                    params=params,
                    headers={"Authorization": f"Bearer {token}"},
                )
                if response.status_code == 401 and attempt == 0:
                    logger.info("Directory token rejected, requesting a new one")
                    self._token = None
                    continue
                self._raise_for_status(response)
                return response.json()
            raise TransientFetchError(SERVICE_NAME, "authentication rejected")

        try:
            return await self._circuit_breaker.call(
                retry_with_backoff,
                _make_request,
                config=self._retry_config,
            )
        except TransientFetchError:
            raise
        except CircuitOpenError as e:
            raise TransientFetchError(SERVICE_NAME, str(e)) from e
        except httpx.TimeoutException as e:
            raise TransientFetchError(SERVICE_NAME, "request timed out", timed_out=True) from e
        except (httpx.HTTPError, _ServerError, ValueError, KeyError) as e:
            raise TransientFetchError(SERVICE_NAME, str(e) or type(e).__name__) from e

    def _parse_records(self, payload: Any, limit: int) -> list[DirectoryRecord]:
        rows = payload.get("value") if isinstance(payload, dict) else None
        if not isinstance(rows, list):
            raise TransientFetchError(SERVICE_NAME, "response has no record list")
        records = []
        for row in rows[:limit]:
            try:
                records.append(DirectoryRecord.model_validate(row))
            except ValidationError as e:
                logger.warning(f"Skipping malformed directory row: {e.error_count()} error(s)")
        return records

    async def search_by_name_contains(
        self,
        term: str,
        limit: int = 20,
        order_by: str = DEFAULT_ORDER_BY,
    ) -> list[DirectoryRecord]:
        """
        Search hospitals whose name contains ``term``.

        Args:
            term: Search term; single quotes are escaped for OData
            limit: Maximum records ($top)
            order_by: OData ordering clause

        Returns:
            Matching records (at most ``limit``)

        Raises:
            TransientFetchError: If the directory cannot be reached
        """
        with tracer.start_as_current_span("directory.search") as span:
            span.set_attribute("directory.term_length", len(term))
            payload = await self._get(
                HOSPITALS_ENDPOINT,
                params={
                    "$filter": f"contains(Name, '{_escape_odata(term)}')",
                    "$top": limit,
                    "$orderby": order_by,
                },
            )
            records = self._parse_records(payload, limit)
            span.set_attribute("directory.result_count", len(records))
            return records

    async def get_all_paged(
        self,
        limit: int = 7000,
        order_by: str = DEFAULT_ORDER_BY,
    ) -> list[DirectoryRecord]:
        """
        Fetch up to ``limit`` hospitals.

        Raises:
            TransientFetchError: If the directory cannot be reached
        """
        payload = await self._get(
            HOSPITALS_ENDPOINT,
            params={"$top": limit, "$orderby": order_by},
        )
        records = self._parse_records(payload, limit)
        logger.info(f"Fetched {len(records)} directory records")
        return records

    async def get_by_id(self, record_id: int) -> DirectoryRecord:
        """
        Fetch a single hospital by its directory id.

        Raises:
            TransientFetchError: If the directory cannot be reached or
                the record does not exist
        """
        payload = await self._get(f"{HOSPITALS_ENDPOINT}({int(record_id)})")
        try:
            return DirectoryRecord.model_validate(payload)
        except ValidationError as e:
            raise TransientFetchError(SERVICE_NAME, f"malformed record {record_id}") from e

    @property
    def circuit_breaker_stats(self) -> dict[str, Any]:
        """Get circuit breaker statistics for monitoring."""
        stats = self._circuit_breaker.stats
        return {
            "state": stats.state.value,
            "failure_count": stats.failure_count,
            "total_calls": stats.total_calls,
            "total_failures": stats.total_failures,
            "total_successes": stats.total_successes,
        }
