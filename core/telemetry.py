"""
core/telemetry.py -- OpenTelemetry provider setup and HTTP metrics.

configure_telemetry() is called once from the API lifespan. It installs SDK
tracer and meter providers tagged with service.name so every span opened by
core.tracing.traced() is recorded. Exporters are attached only when
OTEL_ENABLED=true; they speak OTLP over HTTP to OTEL_ENDPOINT.

If an SDK TracerProvider is already installed (the test suite installs one
with an in-memory exporter) configuration is skipped: OpenTelemetry allows the
global provider to be set once per process.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import SERVICE_NAME, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from core.config import Settings

logger = logging.getLogger("authservice.telemetry")

METER_NAME = "authservice"

_meter = metrics.get_meter(METER_NAME)
_response_time = _meter.create_histogram(
    "http.server.response_time",
    unit="ms",
    description="Response time",
)


@dataclass
class TelemetryProviders:
    tracer_provider: TracerProvider
    meter_provider: MeterProvider


def configure_telemetry(settings: Settings) -> TelemetryProviders | None:
    """Install global tracer and meter providers for this process.

    Returns the installed providers, or None when an SDK provider was already
    present and nothing was changed.
    """
    if isinstance(trace.get_tracer_provider(), TracerProvider):
        logger.info("Telemetry already configured -- keeping existing providers")
        return None

    resource = Resource.create({SERVICE_NAME: settings.service_name})
    tracer_provider = TracerProvider(resource=resource)
    readers = []
    if settings.otel_enabled:
        endpoint = settings.otel_endpoint.rstrip("/")
        tracer_provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=f"{endpoint}/v1/traces")))
        readers.append(PeriodicExportingMetricReader(OTLPMetricExporter(endpoint=f"{endpoint}/v1/metrics")))
        logger.info("Telemetry export enabled (endpoint=%s)", endpoint)
    else:
        logger.info("Telemetry export disabled -- spans are recorded but not exported")
    meter_provider = MeterProvider(resource=resource, metric_readers=readers)

    trace.set_tracer_provider(tracer_provider)
    metrics.set_meter_provider(meter_provider)
    logger.info("Tracing and metrics initialized for %s", settings.service_name)
    return TelemetryProviders(tracer_provider=tracer_provider, meter_provider=meter_provider)


def shutdown_telemetry(providers: TelemetryProviders | None) -> None:
    """Flush and stop the providers returned by configure_telemetry()."""
    if providers is None:
        return
    providers.tracer_provider.shutdown()
    providers.meter_provider.shutdown()


def record_response_time(route: str, duration_ms: float, status_code: int) -> None:
    """Record one request's wall-clock latency in the response-time histogram."""
    _response_time.record(
        duration_ms,
        attributes={"http.route": route, "http.status_code": status_code},
    )
