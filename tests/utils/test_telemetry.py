"""Tests for OpenTelemetry tracing helpers."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from opentelemetry import trace

from toolbridge.utils.telemetry import (
    _INSTRUMENTATION_NAME,
    ATTR_PROVIDER,
    ATTR_TOOL_NAME,
    configure_telemetry,
    get_tracer,
    shutdown_telemetry,
)


class TestGetTracer:
    def test_returns_tracer(self) -> None:
        assert isinstance(get_tracer("toolbridge.test"), trace.Tracer)

    def test_default_name(self) -> None:
        assert isinstance(get_tracer(), trace.Tracer)

    def test_noop_span(self) -> None:
        """Without SDK configured, spans should be no-ops."""
        with get_tracer("test.noop").start_as_current_span("tool.invoke") as span:
            span.set_attribute(ATTR_TOOL_NAME, "add")


class TestConfigureTelemetry:
    def test_raises_without_sdk(self) -> None:
        with (
            patch.dict("sys.modules", {"opentelemetry.sdk.resources": None}),
            pytest.raises(ImportError, match="opentelemetry-sdk"),
        ):
            configure_telemetry()

    def test_otlp_raises_without_exporter(self) -> None:
        pytest.importorskip("opentelemetry.sdk.trace")

        with (
            patch.dict("sys.modules", {"opentelemetry.exporter.otlp.proto.grpc.trace_exporter": None}),
            pytest.raises(ImportError, match="opentelemetry-exporter-otlp"),
        ):
            configure_telemetry(otlp_endpoint="http://localhost:4317")


class TestAttributeConstants:
    def test_namespaced(self) -> None:
        assert ATTR_PROVIDER.startswith("toolbridge.")
        assert ATTR_TOOL_NAME.startswith("toolbridge.")

    def test_instrumentation_name(self) -> None:
        assert _INSTRUMENTATION_NAME == "toolbridge"


class TestShutdownTelemetry:
    def test_flushes_provider(self) -> None:
        provider = MagicMock()
        shutdown_telemetry(provider)
        provider.shutdown.assert_called_once()

    def test_none_is_ignored(self) -> None:
        shutdown_telemetry(None)
