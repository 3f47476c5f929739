"""
Tracing Utilities.

Thin helpers over the OpenTelemetry API. Spans are no-ops unless the host
application installs an SDK tracer provider, so library code can trace
unconditionally.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

logger = logging.getLogger(__name__)

TELEMETRY_ENV_VAR = "ENRICHMENT_TELEMETRY_ENABLED"


def is_telemetry_enabled() -> bool:
    """Telemetry is on unless ENRICHMENT_TELEMETRY_ENABLED is a false-ish value."""
    value = os.getenv(TELEMETRY_ENV_VAR, "true").lower()
    return value not in ("false", "0", "no", "off")


def get_tracer(name: str = "src.enrichment") -> trace.Tracer:
    """
    Get a tracer for the given instrumentation scope.

    Returns the no-op tracer when telemetry is disabled.
    """
    if not is_telemetry_enabled():
        return trace.NoOpTracer()
    return trace.get_tracer(name)


def record_exception(exception: Exception, span: Any = None) -> None:
    """Record an exception on the given (or current) span and mark it as errored."""
    span = span or trace.get_current_span()
    if span is not None and span.is_recording():
        span.record_exception(exception)
        span.set_status(Status(StatusCode.ERROR, str(exception)))


def add_span_attributes(attributes: dict[str, Any]) -> None:
    """
    Add attributes to the current span.

    Example:
        add_span_attributes({"resolver.confidence": 0.92})
    """
    span = trace.get_current_span()
    if span is not None and span.is_recording():
        span.set_attributes(attributes)


@contextmanager
def trace_span(
    name: str,
    attributes: dict[str, Any] | None = None,
    tracer_name: str = "src.enrichment",
) -> Iterator[Any]:
    """
    Context manager for creating a traced span.

    Example:
        with trace_span("directory.fetch_all", {"directory.page_size": 7000}) as span:
            records = await service.get_all_paged(limit=7000)
            span.set_attribute("directory.record_count", len(records))
    """
    tracer = get_tracer(tracer_name)
    with tracer.start_as_current_span(name) as span:
        if attributes:
            span.set_attributes(attributes)
        try:
            yield span
        except Exception as e:
            record_exception(e, span)
            raise
