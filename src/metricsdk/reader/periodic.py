"""Reader that collects and exports on a fixed interval."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from ..config import ReaderConfig
from ..errors import MetricReadError
from ..exporter.base import ExporterCapability
from ..metrics.meter import MeterProvider
from .base import MetricReader

logger = logging.getLogger(__name__)

DEFAULT_EXPORT_INTERVAL_MS = 60000
DEFAULT_EXPORT_TIMEOUT_MS = 30000


@dataclass
class ReaderShared:
    """State shared between the caller and the background collection thread."""

    shutting_down: bool = False
    cond: threading.Condition = field(default_factory=lambda: threading.Condition(threading.Lock()))


class PeriodicExportingReader:
    """Owns a :class:`MetricReader` and drives it from a background thread.

    The thread starts in the constructor and runs until :meth:`shutdown`.
    Collection errors are logged and never stop the loop.
    """

    def __init__(
        self,
        provider: MeterProvider,
        exporter: ExporterCapability,
        export_interval_ms: int | None = None,
        export_timeout_ms: int | None = None,
    ) -> None:
        self.export_interval_ms = (
            DEFAULT_EXPORT_INTERVAL_MS if export_interval_ms is None else export_interval_ms
        )
        self.export_timeout_ms = (
            DEFAULT_EXPORT_TIMEOUT_MS if export_timeout_ms is None else export_timeout_ms
        )
        if self.export_interval_ms <= 0:
            raise ValueError("export_interval_ms must be positive")
        if self.export_timeout_ms < 0:
            raise ValueError("export_timeout_ms must not be negative")

        self.reader = MetricReader(exporter)
        self.reader.bind_owner(self.shutdown)
        provider.add_reader(self.reader)

        self._shared = ReaderShared()
        self._shutdown_guard = threading.Lock()
        self._has_shut_down = False
        self._thread = threading.Thread(
            target=self._run, name="metricsdk-periodic-reader", daemon=True
        )
        self._thread.start()
        logger.info(
            "PeriodicExportingReader started (interval=%dms, timeout=%dms)",
            self.export_interval_ms,
            self.export_timeout_ms,
        )

    @classmethod
    def from_config(
        cls,
        provider: MeterProvider,
        exporter: ExporterCapability,
        config: ReaderConfig,
    ) -> PeriodicExportingReader:
        return cls(
            provider,
            exporter,
            export_interval_ms=config.export_interval_ms,
            export_timeout_ms=config.export_timeout_ms,
        )

    def _run(self) -> None:
        """Background thread loop."""
        shared = self._shared
        with shared.cond:
            while not shared.shutting_down:
                if self.reader.meter_provider is not None:
                    try:
                        self.reader.collect()
                    except MetricReadError as exc:
                        logger.warning("PeriodicExportingReader: collection failed: %s", exc)
                    except Exception:
                        logger.exception("PeriodicExportingReader: collection failed")
                else:
                    logger.warning("PeriodicExportingReader: no meter provider registered")
                if shared.shutting_down:
                    break
                shared.cond.wait(self.export_interval_ms / 1000.0)

    def force_flush(self, timeout_ms: int | None = None) -> None:
        """Wait for an in-flight export, bounded by the export timeout by default."""
        self.reader.force_flush(self.export_timeout_ms if timeout_ms is None else timeout_ms)

    def shutdown(self) -> None:
        """Stop the background thread, then shut the inner reader down.

        Also reached through the inner reader when the meter provider shuts
        down. Every wait is bounded by the export timeout; a thread stuck in
        an export past that is left to finish on its own.
        """
        with self._shutdown_guard:
            if self._has_shut_down:
                return
            self._has_shut_down = True
        self.reader.bind_owner(None)

        timeout = self.export_timeout_ms / 1000.0
        if self._shared.cond.acquire(timeout=timeout):
            # the loop is parked in wait() and exits as soon as it wakes
            try:
                self._shared.shutting_down = True
                self._shared.cond.notify()
            finally:
                self._shared.cond.release()
            join_timeout = None
        else:
            # the loop is mid-collection and checks the flag before waiting again
            self._shared.shutting_down = True
            join_timeout = timeout
        if self._thread is not threading.current_thread():
            self._thread.join(join_timeout)
        if self._thread.is_alive():
            logger.warning(
                "PeriodicExportingReader: collection thread still busy after %d ms",
                self.export_timeout_ms,
            )
        self.reader.shutdown(self.export_timeout_ms)
        logger.info("PeriodicExportingReader stopped")
