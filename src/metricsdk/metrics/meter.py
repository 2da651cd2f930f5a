"""Meters, the meter provider, and the per-meter aggregation step."""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING, Any

from .instrument import (
    Cell,
    Counter,
    Gauge,
    Histogram,
    Instrument,
    UpDownCounter,
    attributes_key,
)
from .measurement import DataPoint, HistogramData, InstrumentOptions, Measurements
from .view import (
    Aggregation,
    AggregationSelector,
    Temporality,
    TemporalitySelector,
    default_temporality_for,
)

if TYPE_CHECKING:
    from ..reader.base import MetricReader

logger = logging.getLogger(__name__)


class Meter:
    """A named source of instruments belonging to one instrumentation scope."""

    def __init__(
        self,
        name: str,
        version: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> None:
        self.name = name
        self.version = version
        self.attributes = attributes
        self._lock = threading.Lock()
        self._instruments: dict[str, Instrument] = {}

    @property
    def instruments(self) -> list[Instrument]:
        """Instruments in creation order."""
        with self._lock:
            return list(self._instruments.values())

    def _create(
        self,
        cls: type[Instrument],
        name: str,
        description: str,
        unit: str,
        value_type: type,
        explicit_buckets: tuple[float, ...] | None = None,
    ) -> Any:
        if not name:
            raise ValueError("instrument name must not be empty")
        options = InstrumentOptions(
            name=name,
            description=description,
            unit=unit,
            explicit_buckets=tuple(explicit_buckets) if explicit_buckets else None,
        )
        with self._lock:
            existing = self._instruments.get(name)
            if existing is not None:
                if type(existing) is cls and existing.value_type is value_type:
                    return existing
                raise ValueError(
                    f"instrument {name!r} already registered on meter {self.name!r} "
                    f"as {existing.kind.value}"
                )
            instrument = cls(options, value_type)
            self._instruments[name] = instrument
            return instrument

    def create_counter(
        self, name: str, description: str = "", unit: str = "", value_type: type = int
    ) -> Counter:
        return self._create(Counter, name, description, unit, value_type)

    def create_up_down_counter(
        self, name: str, description: str = "", unit: str = "", value_type: type = int
    ) -> UpDownCounter:
        return self._create(UpDownCounter, name, description, unit, value_type)

    def create_histogram(
        self,
        name: str,
        description: str = "",
        unit: str = "",
        value_type: type = float,
        explicit_buckets: tuple[float, ...] | None = None,
    ) -> Histogram:
        if explicit_buckets is not None and list(explicit_buckets) != sorted(explicit_buckets):
            raise ValueError("histogram bucket boundaries must be sorted")
        return self._create(Histogram, name, description, unit, value_type, explicit_buckets)

    def create_gauge(
        self, name: str, description: str = "", unit: str = "", value_type: type = float
    ) -> Gauge:
        return self._create(Gauge, name, description, unit, value_type)


class MeterProvider:
    """Registry of meters and of the readers that collect from them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._meters: dict[str, Meter] = {}
        self._readers: list[MetricReader] = []
        self._shutdown = False

    def get_meter(
        self,
        name: str,
        version: str | None = None,
        attributes: dict[str, Any] | None = None,
    ) -> Meter:
        """Return the meter registered under *name*, creating it on first use."""
        with self._lock:
            meter = self._meters.get(name)
            if meter is None:
                meter = Meter(name, version=version, attributes=attributes)
                self._meters[name] = meter
            return meter

    @property
    def meters(self) -> list[Meter]:
        """Meters in registration order."""
        with self._lock:
            return list(self._meters.values())

    @property
    def readers(self) -> list[MetricReader]:
        with self._lock:
            return list(self._readers)

    def add_reader(self, reader: MetricReader) -> None:
        with self._lock:
            if reader.meter_provider is self:
                return
            if reader.meter_provider is not None:
                raise ValueError("reader is already registered with another meter provider")
            reader.meter_provider = self
            self._readers.append(reader)

    def shutdown(self) -> None:
        """Shut down every registered reader. Safe to call more than once."""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
            readers = list(self._readers)
        for reader in readers:
            reader.shutdown()
        logger.info("MeterProvider shut down (%d readers)", len(readers))


def _to_point(cell: Cell, aggregation: Aggregation, bounds: tuple[float, ...],
              start: float, now: float) -> DataPoint:
    if aggregation is Aggregation.LAST_VALUE:
        return DataPoint(value=cell.last, attributes=cell.attributes,
                         timestamp=now, start_timestamp=start)
    if aggregation is Aggregation.EXPLICIT_BUCKET_HISTOGRAM:
        counts = cell.bucket_counts
        if not counts:
            # non-histogram instrument aggregated as a histogram: single bucket
            counts = [0] * len(bounds) + [cell.count]
        return DataPoint(
            value=cell.sum,
            attributes=cell.attributes,
            timestamp=now,
            start_timestamp=start,
            histogram=HistogramData(
                bounds=bounds,
                bucket_counts=counts,
                count=cell.count,
                sum=cell.sum,
                min=cell.min,
                max=cell.max,
            ),
        )
    return DataPoint(value=cell.sum, attributes=cell.attributes,
                     timestamp=now, start_timestamp=start)

class DeltaState:
    """Cumulative values a reader last reported, per instrument and attribute set.

    Instrument state is shared by every reader of a provider and is never
    reset; a delta reader subtracts its own baseline instead. New baselines
    are staged by :meth:`AggregatedMetrics.fetch` and only take effect on
    :meth:`commit`, so a failed export is folded into the next delta.
    """

    def __init__(self) -> None:
        self._last: dict[tuple, tuple[float, Cell]] = {}
        self._pending: dict[tuple, tuple[float, Cell]] = {}

    def delta(self, key: tuple, cell: Cell, start: float,
              now: float) -> tuple[float, Cell] | None:
        """Return the interval start and the change since the last commit.

        Returns None when nothing was recorded since then.
        """
        previous = self._last.get(key)
        if previous is None:
            return start, cell
        since, base = previous
        count = cell.count - base.count
        if count <= 0:
            return None
        diff = Cell(
            attributes=cell.attributes,
            sum=cell.sum - base.sum,
            last=cell.last,
            count=count,
            # interval extremes are not recoverable from cumulative state
            min=cell.min,
            max=cell.max,
            bucket_counts=[a - b for a, b in zip(cell.bucket_counts, base.bucket_counts)],
        )
        return since, diff

    def stage(self, entries: dict[tuple, tuple[float, Cell]]) -> None:
        self._pending.update(entries)

    def commit(self) -> None:
        self._last.update(self._pending)
        self._pending = {}

    def discard(self) -> None:
        self._pending = {}


class AggregatedMetrics:
    """Reduces the raw state of a meter's instruments into Measurements."""

    @staticmethod
    def fetch(
        meter: Meter,
        aggregation: AggregationSelector,
        temporality: TemporalitySelector = default_temporality_for,
        delta_state: DeltaState | None = None,
    ) -> list[Measurements]:
        """Return one Measurements per instrument that holds data.

        Instruments whose aggregation is DROP, or that recorded nothing in
        the current interval, are left out. Without *delta_state* a DELTA
        instrument reports everything recorded since it was created.
        """
        if delta_state is None:
            delta_state = DeltaState()
        staged: dict[tuple, tuple[float, Cell]] = {}
        result: list[Measurements] = []
        for instrument in meter.instruments:
            agg = aggregation(instrument.kind)
            if agg is Aggregation.DROP:
                continue
            start, cells = instrument.snapshot()
            now = time.time()
            intervals: list[tuple[float, Cell]] = []
            if temporality(instrument.kind) is Temporality.DELTA:
                for cell in cells:
                    key = (meter.name, instrument.name, attributes_key(cell.attributes))
                    staged[key] = (now, cell)
                    interval = delta_state.delta(key, cell, start, now)
                    if interval is not None:
                        intervals.append(interval)
            else:
                intervals = [(start, cell) for cell in cells]
            if not intervals:
                continue
            points = [_to_point(c, agg, instrument.bounds, s, now) for s, c in intervals]
            if instrument.value_type is int:
                measurements = Measurements(
                    meter_name=meter.name,
                    meter_attributes=meter.attributes,
                    instrument_kind=instrument.kind,
                    instrument_options=instrument.options,
                    int_points=points,
                )
            else:
                measurements = Measurements(
                    meter_name=meter.name,
                    meter_attributes=meter.attributes,
                    instrument_kind=instrument.kind,
                    instrument_options=instrument.options,
                    double_points=points,
                )
            result.append(measurements)
        delta_state.stage(staged)
        return result
