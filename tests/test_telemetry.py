"""Unit tests for core/telemetry.py.

Covers:
- configure_telemetry() leaves an already-installed SDK provider in place
- configure_telemetry() installs tracer and meter providers tagged with
  service.name when only the API's no-op proxy is present
- shutdown_telemetry() tolerates "nothing was configured"
- record_response_time() lands in the http.server.response_time histogram
- The request-logging middleware records one data point per request
"""

from fastapi.testclient import TestClient
from opentelemetry import trace
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider

import core.telemetry
from core.config import Settings
from core.telemetry import configure_telemetry, record_response_time, shutdown_telemetry

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _response_time_points(reader: InMemoryMetricReader, route: str) -> list:
    """Return http.server.response_time data points recorded for route."""
    data = reader.get_metrics_data()
    points = []
    for resource_metrics in data.resource_metrics if data else ():
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name != "http.server.response_time":
                    continue
                assert metric.unit == "ms"
                points.extend(p for p in metric.data.data_points if p.attributes.get("http.route") == route)
    return points


# ---------------------------------------------------------------------------
# Provider setup
# ---------------------------------------------------------------------------


class TestConfigureTelemetry:
    def test_existing_provider_is_kept(self) -> None:
        before = trace.get_tracer_provider()
        assert configure_telemetry(Settings(_env_file=None)) is None
        assert trace.get_tracer_provider() is before

    def test_installs_providers_over_proxy(self, monkeypatch) -> None:
        installed = {}
        monkeypatch.setattr(core.telemetry.trace, "get_tracer_provider", trace.ProxyTracerProvider)
        monkeypatch.setattr(
            core.telemetry.trace, "set_tracer_provider", lambda p: installed.setdefault("tracer", p)
        )
        monkeypatch.setattr(
            core.telemetry.metrics, "set_meter_provider", lambda p: installed.setdefault("meter", p)
        )

        providers = configure_telemetry(Settings(_env_file=None, service_name="auth-service-test"))
        try:
            assert providers is not None
            assert isinstance(providers.tracer_provider, TracerProvider)
            assert isinstance(providers.meter_provider, MeterProvider)
            assert installed == {"tracer": providers.tracer_provider, "meter": providers.meter_provider}
            assert providers.tracer_provider.resource.attributes["service.name"] == "auth-service-test"
            assert providers.meter_provider._sdk_config.resource.attributes["service.name"] == "auth-service-test"
        finally:
            shutdown_telemetry(providers)

    def test_shutdown_without_providers(self) -> None:
        assert shutdown_telemetry(None) is None


# ---------------------------------------------------------------------------
# Response-time histogram
# ---------------------------------------------------------------------------


class TestResponseTime:
    def test_record_response_time(self, metric_reader: InMemoryMetricReader) -> None:
        record_response_time("/test/direct-record", 12.5, 201)

        (point,) = _response_time_points(metric_reader, "/test/direct-record")
        assert point.count == 1
        assert point.sum == 12.5
        assert point.attributes["http.status_code"] == 201

    def test_middleware_records_each_request(
        self, api_client: TestClient, metric_reader: InMemoryMetricReader
    ) -> None:
        route = "/api/v1/auth/login"
        before = sum(p.count for p in _response_time_points(metric_reader, route))

        resp = api_client.post(route, json={"email": "nobody@x.com", "password": "whatever"})
        assert resp.status_code == 401

        points = _response_time_points(metric_reader, route)
        assert sum(p.count for p in points) == before + 1
        assert any(p.attributes["http.status_code"] == 401 for p in points)
