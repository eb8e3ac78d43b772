"""OpenTelemetry tracing setup for vcsrun.

Every child process started by the runner is recorded as a ``subprocess``
span. Nothing is exported until ``init_tracing`` registers a provider; until
then the default no-op provider swallows the spans.

Design follows Function Core / Imperative Shell:
- Pure functions: build_resource, resolve_exporter_type, command_attributes
  compute plain values, no OTel SDK imports.
- Imperative shell (internal): _create_tracer_provider builds a provider
  without setting it globally.
- Imperative shell (public): init_tracing, get_tracer, shutdown_tracing.
"""

from __future__ import annotations

import os
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.trace import Tracer

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

SERVICE_NAME = "vcsrun"
SERVICE_VERSION = "0.1.0"

VCSRUN_OTEL_EXPORTER_ENV = "VCSRUN_OTEL_EXPORTER"
VCSRUN_OTEL_ENDPOINT_ENV = "VCSRUN_OTEL_ENDPOINT"


# ---------------------------------------------------------------------------
# Enum
# ---------------------------------------------------------------------------


class ExporterType(Enum):
    """Supported trace exporter backends."""

    CONSOLE = "console"
    OTLP_GRPC = "otlp_grpc"
    OTLP_HTTP = "otlp_http"
    NONE = "none"


# ---------------------------------------------------------------------------
# Pure functions (no OTel SDK imports)
# ---------------------------------------------------------------------------


def build_resource(
    service_name: str = SERVICE_NAME,
    service_version: str = SERVICE_VERSION,
    extra_attributes: dict[str, str] | None = None,
) -> dict[str, str]:
    """Compute resource attributes as a plain dict.

    ``service.name`` and ``service.version`` always come from the explicit
    parameters, even if *extra_attributes* contains those keys.
    """
    attrs: dict[str, str] = {}
    if extra_attributes:
        attrs.update(extra_attributes)
    attrs["service.name"] = service_name
    attrs["service.version"] = service_version
    return attrs


def resolve_exporter_type(exporter: ExporterType | None = None) -> ExporterType:
    """Determine the exporter type.

    Resolution order:

    1. Explicit *exporter* parameter.
    2. ``VCSRUN_OTEL_EXPORTER`` environment variable.
    3. Default: ``ExporterType.NONE``.

    Raises:
        ValueError: If the environment variable contains an unrecognised value.
    """
    if exporter is not None:
        return exporter

    env_value = os.environ.get(VCSRUN_OTEL_EXPORTER_ENV)
    if env_value is not None:
        try:
            return ExporterType(env_value)
        except ValueError:
            valid = ", ".join(e.value for e in ExporterType)
            msg = f"Invalid {VCSRUN_OTEL_EXPORTER_ENV} value {env_value!r}. Valid options: {valid}"
            raise ValueError(msg) from None

    return ExporterType.NONE


def command_attributes(
    program: str,
    args: Sequence[str],
    cwd: Path | None,
    returncode: int | None = None,
) -> dict[str, str | int]:
    """Build ``vcsrun.command.*`` span attributes for one child process."""
    attrs: dict[str, str | int] = {
        "vcsrun.command.program": program,
        "vcsrun.command.args": " ".join(args),
    }
    if cwd is not None:
        attrs["vcsrun.command.cwd"] = str(cwd)
    if returncode is not None:
        attrs["vcsrun.command.returncode"] = returncode
    return attrs


# ---------------------------------------------------------------------------
# Imperative shell — internal
# ---------------------------------------------------------------------------


def _create_tracer_provider(
    resource_attrs: dict[str, str],
    exporter_type: ExporterType,
    endpoint: str | None = None,
) -> TracerProvider:
    """Build a ``TracerProvider`` without setting it globally."""
    from opentelemetry.sdk.resources import Resource
    from opentelemetry.sdk.trace import TracerProvider

    resource = Resource.create(resource_attrs)
    provider = TracerProvider(resource=resource)

    if exporter_type is ExporterType.CONSOLE:
        from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))

    elif exporter_type is ExporterType.OTLP_GRPC:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        exporter_grpc = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(exporter_grpc))

    elif exporter_type is ExporterType.OTLP_HTTP:
        from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
        from opentelemetry.sdk.trace.export import BatchSpanProcessor

        exporter_http = OTLPSpanExporter(endpoint=endpoint) if endpoint else OTLPSpanExporter()
        provider.add_span_processor(BatchSpanProcessor(exporter_http))

    # ExporterType.NONE: no processors.

    return provider


# ---------------------------------------------------------------------------
# Imperative shell — public
# ---------------------------------------------------------------------------


def init_tracing(
    exporter: ExporterType | None = None,
    endpoint: str | None = None,
    service_name: str = SERVICE_NAME,
    service_version: str = SERVICE_VERSION,
) -> None:
    """Create and globally register a ``TracerProvider``.

    Each call replaces the previous provider after shutting it down. The
    endpoint falls back to ``VCSRUN_OTEL_ENDPOINT``.
    """
    from opentelemetry import trace

    resource_attrs = build_resource(service_name, service_version)
    exporter_type = resolve_exporter_type(exporter)
    endpoint = endpoint or os.environ.get(VCSRUN_OTEL_ENDPOINT_ENV) or None
    provider = _create_tracer_provider(resource_attrs, exporter_type, endpoint)

    current = trace.get_tracer_provider()
    if hasattr(current, "shutdown"):
        current.shutdown()

    # Reset the set-once guard so set_tracer_provider accepts the new provider.
    once = trace._TRACER_PROVIDER_SET_ONCE
    with once._lock:
        once._done = False

    trace.set_tracer_provider(provider)


def get_tracer(name: str = "vcsrun") -> Tracer:
    """Return a tracer from the globally registered provider.

    Without ``init_tracing`` this is the no-op tracer: spans can be started
    but go nowhere.
    """
    from opentelemetry import trace

    return trace.get_tracer(name)


def shutdown_tracing() -> None:
    """Flush pending spans and shut down the global tracer provider.

    Safe to call even if ``init_tracing`` was never called.
    """
    from opentelemetry import trace

    provider = trace.get_tracer_provider()
    if hasattr(provider, "shutdown"):
        provider.shutdown()
