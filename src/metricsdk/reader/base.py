"""Metric reader that pulls aggregated data from a meter provider."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable

from ..errors import (
    CollectFailedOnMissingMeterProvider,
    ConcurrentCollectNotAllowed,
    ExportFailed,
    MetricReadError,
)
from ..exporter.base import ExporterCapability, ExportResult
from ..exporter.metric_exporter import MetricExporter
from ..metrics.measurement import Measurements
from ..metrics.meter import AggregatedMetrics, DeltaState
from ..metrics.view import (
    AggregationSelector,
    TemporalitySelector,
    default_aggregation_for,
    default_temporality_for,
)

if TYPE_CHECKING:
    from ..metrics.meter import MeterProvider

logger = logging.getLogger(__name__)


class MetricReader:
    """Collects one batch per call from every meter of its provider.

    The reader becomes usable once registered through
    :meth:`MeterProvider.add_reader`. Collections never queue: a call made
    while another one is running fails with
    :class:`ConcurrentCollectNotAllowed`.
    """

    def __init__(self, exporter: ExporterCapability) -> None:
        self.exporter = MetricExporter(exporter)
        self.meter_provider: MeterProvider | None = None
        self.temporality: TemporalitySelector = default_temporality_for
        self.aggregation: AggregationSelector = default_aggregation_for
        self._has_shut_down = threading.Event()
        self._shutdown_guard = threading.Lock()
        self._collect_lock = threading.Lock()
        self._delta_state = DeltaState()
        self._owner_shutdown: Callable[[], None] | None = None

    def with_temporality(self, selector: TemporalitySelector) -> MetricReader:
        self.temporality = selector
        return self

    def with_aggregation(self, selector: AggregationSelector) -> MetricReader:
        self.aggregation = selector
        return self

    @property
    def is_shutdown(self) -> bool:
        return self._has_shut_down.is_set()

    def collect(self) -> None:
        """Collect from every meter and export the result as one batch.

        Does nothing once the reader is shut down.
        """
        if self._has_shut_down.is_set():
            return
        if not self._collect_lock.acquire(blocking=False):
            raise ConcurrentCollectNotAllowed("a collection is already running on this reader")
        try:
            self._collect_and_export()
        finally:
            self._collect_lock.release()

    def _collect_and_export(self) -> None:
        provider = self.meter_provider
        if provider is None:
            raise CollectFailedOnMissingMeterProvider("reader is not registered with a meter provider")

        batch: list[Measurements] = []
        for meter in provider.meters:
            try:
                measurements = AggregatedMetrics.fetch(
                    meter, self.aggregation, self.temporality, self._delta_state
                )
            except Exception:
                logger.exception("Aggregating data points from meter %s failed", meter.name)
                continue
            batch.extend(measurements)

        # the exporter owns the batch from here on
        result = self.exporter.export_batch(batch)
        del batch
        if result is ExportResult.FAILURE:
            self._delta_state.discard()
            raise ExportFailed("exporter rejected the collected batch")
        self._delta_state.commit()

    def force_flush(self, timeout_ms: int) -> None:
        self.exporter.force_flush(timeout_ms)

    def bind_owner(self, owner_shutdown: Callable[[], None] | None) -> None:
        """Route :meth:`shutdown` through the component that owns this reader.

        A provider only knows the reader it registered; the owner gets the
        chance to stop its own machinery before the reader goes down.
        """
        self._owner_shutdown = owner_shutdown

    def shutdown(self, timeout_ms: int | None = None) -> None:
        """Drain once more, then shut the exporter down. Idempotent.

        With *timeout_ms* set, waiting for an in-flight collection and for an
        in-flight export is bounded by it; when the wait runs out the drain
        is skipped and the exporter is released without waiting. Without it
        both waits are unbounded, so a stuck exporter blocks shutdown.
        """
        owner_shutdown, self._owner_shutdown = self._owner_shutdown, None
        if owner_shutdown is not None:
            owner_shutdown()
            return

        with self._shutdown_guard:
            if self._has_shut_down.is_set():
                return
            self._has_shut_down.set()

        # wait for a running collect; afterwards no new one can start
        wait = -1 if timeout_ms is None else timeout_ms / 1000.0
        if self._collect_lock.acquire(timeout=wait):
            try:
                self._collect_and_export()
            except MetricReadError as exc:
                logger.warning("MetricReader shutdown: final collection failed: %s", exc)
            finally:
                self._collect_lock.release()
        else:
            logger.warning(
                "MetricReader shutdown: collection still running after %d ms, skipping final drain",
                timeout_ms,
            )
        self.exporter.shutdown(timeout_ms)
        logger.info("MetricReader shut down")
