"""OpenTelemetry exporter – forwards collected batches via OTLP/HTTP."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource, SERVICE_NAME

from ..config import OtelExporterConfig
from ..metrics.measurement import Measurements
from .base import ExporterCapability

logger = logging.getLogger(__name__)


def _otel_attributes(attributes: dict[str, Any]) -> dict[str, Any]:
    return {k: list(v) if isinstance(v, tuple) else v for k, v in attributes.items()}


class OtelExporter(ExporterCapability):
    """Exports collected batches to an OpenTelemetry endpoint.

    Each data point of a batch is recorded as a gauge observation through the
    OTel SDK; the SDK's reader flushes them to the configured OTLP/HTTP
    endpoint. Histogram points contribute their sum.
    """

    def __init__(
        self,
        config: OtelExporterConfig,
        metric_readers: Sequence[MetricReader] | None = None,
    ) -> None:
        self._config = config
        resource = Resource.create({SERVICE_NAME: config.service_name})

        if metric_readers is None:
            exporter_kwargs: dict[str, Any] = {
                "endpoint": f"{config.endpoint.rstrip('/')}/v1/metrics",
            }
            if config.headers:
                exporter_kwargs["headers"] = config.headers
            metric_readers = [
                PeriodicExportingMetricReader(
                    OTLPMetricExporter(**exporter_kwargs),
                    export_interval_millis=config.export_interval_ms,
                )
            ]
        self._provider = MeterProvider(resource=resource, metric_readers=list(metric_readers))
        self._meters: dict[str, Any] = {}
        self._gauges: dict[tuple[str, str], Any] = {}

        logger.info(
            "OtelExporter initialized → %s (service=%s)",
            config.endpoint,
            config.service_name,
        )

    def _get_gauge(self, m: Measurements) -> Any:
        key = (m.meter_name, m.instrument_options.name)
        if key not in self._gauges:
            meter = self._meters.get(m.meter_name)
            if meter is None:
                meter = self._provider.get_meter(m.meter_name)
                self._meters[m.meter_name] = meter
            self._gauges[key] = meter.create_gauge(
                name=m.instrument_options.name,
                unit=m.instrument_options.unit,
                description=m.instrument_options.description,
            )
        return self._gauges[key]

    def export_batch(self, batch: list[Measurements]) -> None:
        try:
            for m in batch:
                gauge = self._get_gauge(m)
                for point in m.points:
                    gauge.set(point.value, attributes=_otel_attributes(point.attributes))
        finally:
            batch.clear()

    def shutdown(self) -> None:
        self._provider.shutdown()
        logger.info("OtelExporter shut down")
