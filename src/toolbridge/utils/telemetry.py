"""OpenTelemetry tracing for provider start-up, tool calls and model rounds.

Instrumented code only depends on the OpenTelemetry API::

    _tracer = get_tracer(__name__)

    with _tracer.start_as_current_span("tool.invoke") as span:
        span.set_attribute(ATTR_TOOL_NAME, "add")

Until :func:`configure_telemetry` installs an SDK tracer provider, every
span is a no-op. The SDK and exporters ship in the ``otel`` extra.
"""

from __future__ import annotations

from typing import Any

from opentelemetry import trace

# Span attribute keys
ATTR_PROVIDER = "toolbridge.provider"
ATTR_PROVIDER_COUNT = "toolbridge.provider.count"
ATTR_PROVIDER_FAILED = "toolbridge.provider.failed"
ATTR_TOOL_NAME = "toolbridge.tool.name"
ATTR_TOOL_COUNT = "toolbridge.tool.count"
ATTR_ROUND = "toolbridge.round"
ATTR_MAX_ROUNDS = "toolbridge.max_rounds"
ATTR_INVOCATIONS = "toolbridge.invocations"
ATTR_MODEL = "toolbridge.model"
ATTR_FINISH_REASON = "toolbridge.finish_reason"
ATTR_TOKENS_TOTAL = "toolbridge.tokens.total"

_INSTRUMENTATION_NAME = "toolbridge"

_SDK_HINT = "Install it with: pip install toolbridge[otel]"


def get_tracer(name: str | None = None) -> trace.Tracer:
    """Return a tracer for *name*; a no-op one unless telemetry is configured."""
    return trace.get_tracer(name or _INSTRUMENTATION_NAME)


def configure_telemetry(
    *,
    service_name: str = _INSTRUMENTATION_NAME,
    otlp_endpoint: str | None = None,
) -> Any:
    """Install an SDK tracer provider and return it.

    Spans go to an OTLP/gRPC collector when *otlp_endpoint* is set, and
    are printed to stdout otherwise. Pass the returned provider to
    :func:`shutdown_telemetry` on exit so batched spans are flushed.

    Raises:
        ImportError: If ``opentelemetry-sdk`` (or, for OTLP,
            ``opentelemetry-exporter-otlp``) is not installed.
    """
    try:
        from opentelemetry.sdk.resources import Resource  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace import TracerProvider  # pyright: ignore[reportMissingImports]
        from opentelemetry.sdk.trace.export import (  # pyright: ignore[reportMissingImports]
            BatchSpanProcessor,
            ConsoleSpanExporter,
            SimpleSpanProcessor,
        )
    except ImportError as exc:
        msg = f"opentelemetry-sdk is required for configure_telemetry(). {_SDK_HINT}"
        raise ImportError(msg) from exc

    provider = TracerProvider(resource=Resource.create({"service.name": service_name}))
    if otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(_otlp_exporter(otlp_endpoint)))
    else:
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    trace.set_tracer_provider(provider)
    return provider


def shutdown_telemetry(provider: Any) -> None:
    """Flush pending spans and stop *provider*'s exporters."""
    if provider is not None:
        provider.shutdown()


def _otlp_exporter(endpoint: str) -> Any:
    try:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (  # pyright: ignore[reportMissingImports]
            OTLPSpanExporter,
        )
    except ImportError as exc:
        msg = f"opentelemetry-exporter-otlp is required for OTLP export. {_SDK_HINT}"
        raise ImportError(msg) from exc
    return OTLPSpanExporter(endpoint=endpoint)
