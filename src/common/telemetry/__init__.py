"""
Telemetry helpers for the enrichment pipeline.

Usage:
    from src.common.telemetry import trace_span

    with trace_span("resolver.find_best_match", {"resolver.query_length": len(name)}):
        ...
"""

from src.common.telemetry.tracing import (
    add_span_attributes,
    get_tracer,
    is_telemetry_enabled,
    record_exception,
    trace_span,
)

__all__ = [
    "add_span_attributes",
    "get_tracer",
    "is_telemetry_enabled",
    "record_exception",
    "trace_span",
]
