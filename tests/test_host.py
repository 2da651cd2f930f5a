"""Tests for the psutil-backed host metrics."""

from metricsdk.collector.host import HostMetricsCollector
from metricsdk.config import HostMetricsConfig
from metricsdk.exporter.memory import InMemoryExporter
from metricsdk.metrics.meter import MeterProvider
from metricsdk.reader.base import MetricReader


def test_host_metrics_collected():
    mp = MeterProvider()
    in_mem = InMemoryExporter()
    reader = MetricReader(in_mem)
    mp.add_reader(reader)

    host = HostMetricsCollector(mp.get_meter("host"))
    host.record()
    reader.collect()

    by_name = {m.instrument_options.name: m for m in in_mem.fetch()}
    assert "system.cpu.usage_percent" in by_name
    assert "system.memory.usage_percent" in by_name

    total = [p for p in by_name["system.cpu.usage_percent"].points
             if p.attributes.get("cpu") == "total"]
    assert len(total) == 1
    assert 0 <= total[0].value <= 100

    mem_pct = by_name["system.memory.usage_percent"].points
    assert len(mem_pct) == 1
    assert 0 <= mem_pct[0].value <= 100

    states = {p.attributes["state"] for p in by_name["system.memory.bytes"].points}
    assert states == {"used", "available", "total"}
    mp.shutdown()


def test_host_metrics_memory_only():
    mp = MeterProvider()
    meter = mp.get_meter("host")
    host = HostMetricsCollector(meter, HostMetricsConfig(enabled=True, cpu=False))
    host.record()
    names = [i.name for i in meter.instruments]
    assert "system.cpu.usage_percent" not in names
    assert "system.memory.usage_percent" in names


def test_host_metrics_disabled():
    meter = MeterProvider().get_meter("host")
    host = HostMetricsCollector(meter, HostMetricsConfig(enabled=False))
    host.record()
    assert meter.instruments == []
