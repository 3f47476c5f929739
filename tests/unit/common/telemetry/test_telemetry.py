"""Tests for the tracing helpers."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from opentelemetry import trace
from opentelemetry.trace import StatusCode

from src.common.telemetry import (
    add_span_attributes,
    get_tracer,
    is_telemetry_enabled,
    record_exception,
    trace_span,
)
from src.common.telemetry.tracing import TELEMETRY_ENV_VAR


class TestIsTelemetryEnabled:
    def test_enabled_by_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(TELEMETRY_ENV_VAR, raising=False)
        assert is_telemetry_enabled() is True

    @pytest.mark.parametrize("value", ["false", "0", "no", "off", "FALSE"])
    def test_disabled_values(self, monkeypatch: pytest.MonkeyPatch, value: str) -> None:
        monkeypatch.setenv(TELEMETRY_ENV_VAR, value)
        assert is_telemetry_enabled() is False

    def test_other_values_enable(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(TELEMETRY_ENV_VAR, "yes")
        assert is_telemetry_enabled() is True


class TestGetTracer:
    def test_noop_tracer_when_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(TELEMETRY_ENV_VAR, "false")
        assert isinstance(get_tracer("tests"), trace.NoOpTracer)

    def test_api_tracer_when_enabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(TELEMETRY_ENV_VAR, "true")
        tracer = get_tracer("tests")
        with tracer.start_as_current_span("noop-check") as span:
            assert span is not None


class TestRecordException:
    def test_records_on_recording_span(self) -> None:
        span = MagicMock()
        span.is_recording.return_value = True
        error = ValueError("boom")

        record_exception(error, span)

        span.record_exception.assert_called_once_with(error)
        status = span.set_status.call_args.args[0]
        assert status.status_code == StatusCode.ERROR

    def test_ignores_non_recording_span(self) -> None:
        span = MagicMock()
        span.is_recording.return_value = False

        record_exception(ValueError("boom"), span)

        span.record_exception.assert_not_called()


class TestTraceSpan:
    def test_yields_span_and_accepts_attributes(self) -> None:
        with trace_span("directory.fetch_all", {"directory.page_size": 7000}) as span:
            span.set_attribute("directory.record_count", 3)

    def test_reraises_exceptions(self) -> None:
        with pytest.raises(RuntimeError, match="fetch failed"):
            with trace_span("directory.fetch_all"):
                raise RuntimeError("fetch failed")

    def test_add_span_attributes_outside_span_is_safe(self) -> None:
        add_span_attributes({"resolver.confidence": 0.9})
