"""Tests for the periodic exporting reader."""

import tempfile
import threading
import time
from pathlib import Path

import pytest

from metricsdk.config import LocalExporterConfig, ReaderConfig
from metricsdk.exporter.base import ExporterCapability
from metricsdk.exporter.local import LocalExporter
from metricsdk.exporter.memory import InMemoryExporter
from metricsdk.metrics.meter import MeterProvider
from metricsdk.reader.periodic import (
    DEFAULT_EXPORT_INTERVAL_MS,
    DEFAULT_EXPORT_TIMEOUT_MS,
    PeriodicExportingReader,
)


class CountingExporter(ExporterCapability):
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = 0
        self._lock = threading.Lock()

    def export_batch(self, batch):
        with self._lock:
            self.calls += 1
        if self.fail:
            raise RuntimeError("destination down")


def test_e2e_periodic_exporting_reader():
    """Two instruments recorded, batch holds one entry per instrument."""
    mp = MeterProvider()
    in_mem = InMemoryExporter()
    per = PeriodicExportingReader(mp, in_mem, export_interval_ms=100)

    meter = mp.get_meter("test-reader")
    counter = meter.create_counter("requests", description="a test counter")
    counter.add(10)
    histogram = meter.create_histogram(
        "latency",
        description="a test histogram",
        explicit_buckets=(1.0, 10.0, 100.0),
    )
    histogram.record(1.4)
    histogram.record(10.4)

    time.sleep(0.4)
    per.shutdown()

    data = in_mem.fetch()
    assert len(data) == 2
    by_name = {m.instrument_options.name: m for m in data}
    assert by_name["requests"].int_points[0].value == 10
    assert by_name["latency"].double_points[0].histogram.count == 2
    mp.shutdown()
    in_mem.teardown()


def test_defaults():
    mp = MeterProvider()
    per = PeriodicExportingReader(mp, InMemoryExporter())
    try:
        assert per.export_interval_ms == DEFAULT_EXPORT_INTERVAL_MS == 60000
        assert per.export_timeout_ms == DEFAULT_EXPORT_TIMEOUT_MS == 30000
        assert per.reader.meter_provider is mp
        assert mp.readers == [per.reader]
    finally:
        per.shutdown()


def test_from_config():
    mp = MeterProvider()
    per = PeriodicExportingReader.from_config(
        mp, InMemoryExporter(), ReaderConfig(export_interval_ms=1000, export_timeout_ms=500)
    )
    try:
        assert per.export_interval_ms == 1000
        assert per.export_timeout_ms == 500
    finally:
        per.shutdown()


def test_invalid_interval():
    with pytest.raises(ValueError):
        PeriodicExportingReader(MeterProvider(), InMemoryExporter(), export_interval_ms=0)


def test_shutdown_wakes_thread_immediately():
    """Shutdown does not wait out the remaining interval."""
    mp = MeterProvider()
    counting = CountingExporter()
    per = PeriodicExportingReader(mp, counting, export_interval_ms=60000)
    time.sleep(0.05)

    start = time.monotonic()
    per.shutdown()
    assert time.monotonic() - start < 5
    assert not per._thread.is_alive()
    # at most the first loop iteration plus the final drain
    assert 1 <= counting.calls <= 2


def test_shutdown_is_idempotent():
    mp = MeterProvider()
    counting = CountingExporter()
    per = PeriodicExportingReader(mp, counting, export_interval_ms=60000)
    per.shutdown()
    calls = counting.calls
    per.shutdown()
    mp.shutdown()
    assert counting.calls == calls
    assert per.reader.is_shutdown


def test_loop_survives_export_failures():
    mp = MeterProvider()
    failing = CountingExporter(fail=True)
    per = PeriodicExportingReader(mp, failing, export_interval_ms=20)
    time.sleep(0.3)
    try:
        assert per._thread.is_alive()
        assert failing.calls >= 3
    finally:
        per.shutdown()


def test_no_export_after_shutdown():
    mp = MeterProvider()
    counting = CountingExporter()
    per = PeriodicExportingReader(mp, counting, export_interval_ms=20)
    time.sleep(0.1)
    per.shutdown()
    calls = counting.calls
    per.reader.collect()
    time.sleep(0.1)
    assert counting.calls == calls


def test_force_flush_uses_export_timeout():
    mp = MeterProvider()
    per = PeriodicExportingReader(mp, InMemoryExporter(), export_interval_ms=60000,
                                  export_timeout_ms=1000)
    try:
        per.force_flush()
    finally:
        per.shutdown()


def test_background_export_to_local_files():
    """Start/stop lifecycle writing real JSONL output."""
    with tempfile.TemporaryDirectory() as tmpdir:
        mp = MeterProvider()
        exporter = LocalExporter(LocalExporterConfig(output_dir=tmpdir))
        per = PeriodicExportingReader(mp, exporter, export_interval_ms=50)

        mp.get_meter("app").create_counter("jobs").add(3)
        time.sleep(0.3)

        per.shutdown()
        exporter.shutdown()

        jsonl_files = list(Path(tmpdir).glob("metrics-*.jsonl"))
        assert len(jsonl_files) == 1
        lines = jsonl_files[0].read_text().splitlines()
        assert len(lines) >= 2


def test_provider_shutdown_stops_thread():
    mp = MeterProvider()
    counting = CountingExporter()
    per = PeriodicExportingReader(mp, counting, export_interval_ms=20)
    time.sleep(0.05)

    mp.shutdown()

    assert not per._thread.is_alive()
    assert per.reader.is_shutdown
    calls = counting.calls
    time.sleep(0.1)
    assert counting.calls == calls
    per.shutdown()
    assert counting.calls == calls


class StuckExporter(ExporterCapability):
    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def export_batch(self, batch):
        self.started.set()
        self.release.wait(5)


def test_shutdown_bounded_by_export_timeout():
    mp = MeterProvider()
    stuck = StuckExporter()
    per = PeriodicExportingReader(mp, stuck, export_interval_ms=60000, export_timeout_ms=100)
    assert stuck.started.wait(5)
    try:
        start = time.monotonic()
        per.shutdown()
        assert time.monotonic() - start < 3
        assert per.reader.is_shutdown
    finally:
        stuck.release.set()
        per._thread.join(5)
    assert not per._thread.is_alive()
