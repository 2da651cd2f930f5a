"""Host resource gauges fed from psutil."""

from __future__ import annotations

import logging

import psutil

from ..config import HostMetricsConfig
from ..metrics.meter import Meter

logger = logging.getLogger(__name__)


class HostMetricsCollector:
    """Records CPU and memory usage into gauges of a meter.

    Call :meth:`record` before each collection (or from any scheduler) to
    refresh the gauges; the next reader collection picks up the values.
    A disabled config creates no instruments and makes :meth:`record` a no-op.
    """

    def __init__(self, meter: Meter, config: HostMetricsConfig | None = None) -> None:
        self._config = config or HostMetricsConfig(enabled=True)
        self._meter = meter
        self._cpu = self._config.enabled and self._config.cpu
        self._memory = self._config.enabled and self._config.memory
        if self._cpu:
            self._cpu_percent = meter.create_gauge(
                "system.cpu.usage_percent", "CPU usage percentage", "%"
            )
            self._load_avg = meter.create_gauge(
                "system.cpu.load_avg", "Load average", "1"
            )
            # first call primes psutil's internal counters and always returns 0.0
            psutil.cpu_percent(interval=0)
            psutil.cpu_percent(interval=0, percpu=True)
        if self._memory:
            self._memory_percent = meter.create_gauge(
                "system.memory.usage_percent", "Memory usage percentage", "%"
            )
            self._memory_bytes = meter.create_gauge(
                "system.memory.bytes", "Memory in bytes", "By"
            )
            self._swap_percent = meter.create_gauge(
                "system.swap.usage_percent", "Swap usage percentage", "%"
            )

    def record(self) -> None:
        """Sample host resources once."""
        if self._cpu:
            self._cpu_percent.record(psutil.cpu_percent(interval=0), {"cpu": "total"})
            for idx, pct in enumerate(psutil.cpu_percent(interval=0, percpu=True)):
                self._cpu_percent.record(pct, {"cpu": str(idx)})
            load1, load5, load15 = psutil.getloadavg()
            self._load_avg.record(load1, {"window": "1m"})
            self._load_avg.record(load5, {"window": "5m"})
            self._load_avg.record(load15, {"window": "15m"})

        if self._memory:
            mem = psutil.virtual_memory()
            swap = psutil.swap_memory()
            self._memory_percent.record(mem.percent)
            self._memory_bytes.record(float(mem.used), {"state": "used"})
            self._memory_bytes.record(float(mem.available), {"state": "available"})
            self._memory_bytes.record(float(mem.total), {"state": "total"})
            self._swap_percent.record(swap.percent)
        logger.debug("Host metrics recorded on meter %s", self._meter.name)
