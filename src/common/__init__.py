"""
Shared infrastructure for the enrichment pipeline.

Submodules:
- resilience: circuit breaker and retry with backoff
- logging: log sanitization for secrets and contact PII
- telemetry: OpenTelemetry span helpers
"""
