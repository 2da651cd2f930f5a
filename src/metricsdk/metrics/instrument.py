"""Synchronous instruments that accumulate raw measurements."""

from __future__ import annotations

import bisect
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from .measurement import InstrumentKind, InstrumentOptions, Number

DEFAULT_HISTOGRAM_BOUNDS: tuple[float, ...] = (
    0.0, 5.0, 10.0, 25.0, 50.0, 75.0, 100.0, 250.0,
    500.0, 750.0, 1000.0, 2500.0, 5000.0, 7500.0, 10000.0,
)

AttributesKey = tuple[tuple[str, Any], ...]


def attributes_key(attributes: dict[str, Any] | None) -> AttributesKey:
    """Return a hashable, order-independent key for an attribute set."""
    if not attributes:
        return ()
    return tuple(sorted(
        (k, tuple(v) if isinstance(v, list) else v) for k, v in attributes.items()
    ))


@dataclass
class Cell:
    """Running state for one attribute set of an instrument."""

    attributes: dict[str, Any]
    sum: Number = 0
    last: Number = 0
    count: int = 0
    min: Number = 0
    max: Number = 0
    bucket_counts: list[int] = field(default_factory=list)

    def copy(self) -> "Cell":
        return Cell(
            attributes=dict(self.attributes),
            sum=self.sum,
            last=self.last,
            count=self.count,
            min=self.min,
            max=self.max,
            bucket_counts=list(self.bucket_counts),
        )


class Instrument:
    """Common state handling for all instrument kinds.

    Recording and snapshotting are serialized by a per-instrument lock so that
    a collection running on another thread never observes a half-updated cell.
    """

    kind: InstrumentKind

    def __init__(self, options: InstrumentOptions, value_type: type = int) -> None:
        if value_type not in (int, float):
            raise ValueError(f"value_type must be int or float, got {value_type!r}")
        self.options = options
        self.value_type = value_type
        self._lock = threading.Lock()
        self._cells: dict[AttributesKey, Cell] = {}
        self._start = time.time()

    @property
    def name(self) -> str:
        return self.options.name

    @property
    def bounds(self) -> tuple[float, ...]:
        return self.options.explicit_buckets or DEFAULT_HISTOGRAM_BOUNDS

    def _check_value(self, value: Number) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"{self.name}: expected a number, got {value!r}")
        if self.value_type is int and not isinstance(value, int):
            raise TypeError(f"{self.name}: integer instrument got {value!r}")

    def _record(self, value: Number, attributes: dict[str, Any] | None) -> None:
        self._check_value(value)
        if self.value_type is float:
            value = float(value)
        key = attributes_key(attributes)
        with self._lock:
            cell = self._cells.get(key)
            if cell is None:
                cell = Cell(attributes=dict(attributes or {}), min=value, max=value)
                if self.kind is InstrumentKind.HISTOGRAM:
                    cell.bucket_counts = [0] * (len(self.bounds) + 1)
                self._cells[key] = cell
            cell.sum += value
            cell.last = value
            cell.count += 1
            cell.min = min(cell.min, value)
            cell.max = max(cell.max, value)
            if cell.bucket_counts:
                cell.bucket_counts[bisect.bisect_left(self.bounds, value)] += 1

    def snapshot(self) -> tuple[float, list[Cell]]:
        """Copy the cumulative cells together with the instrument start time.

        Cells are never reset; they are shared by every reader of the meter.
        """
        with self._lock:
            cells = [c.copy() for c in self._cells.values()]
        return self._start, cells


class Counter(Instrument):
    """Monotonic sum; negative increments are rejected."""

    kind = InstrumentKind.COUNTER

    def add(self, value: Number, attributes: dict[str, Any] | None = None) -> None:
        self._check_value(value)
        if value < 0:
            raise ValueError(f"{self.name}: counter increments must be non-negative")
        self._record(value, attributes)


class UpDownCounter(Instrument):
    kind = InstrumentKind.UP_DOWN_COUNTER

    def add(self, value: Number, attributes: dict[str, Any] | None = None) -> None:
        self._record(value, attributes)


class Histogram(Instrument):
    kind = InstrumentKind.HISTOGRAM

    def record(self, value: Number, attributes: dict[str, Any] | None = None) -> None:
        self._record(value, attributes)


class Gauge(Instrument):
    kind = InstrumentKind.GAUGE

    def record(self, value: Number, attributes: dict[str, Any] | None = None) -> None:
        self._record(value, attributes)
