"""Data carried from the aggregation step to exporters."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Union

Number = Union[int, float]


class InstrumentKind(enum.Enum):
    """Kinds of instruments a meter can create."""

    COUNTER = "counter"
    UP_DOWN_COUNTER = "up_down_counter"
    HISTOGRAM = "histogram"
    GAUGE = "gauge"


@dataclass(frozen=True)
class InstrumentOptions:
    """Descriptor of an instrument."""

    name: str
    description: str = ""
    unit: str = ""
    explicit_buckets: tuple[float, ...] | None = None


@dataclass
class HistogramData:
    """Bucketed distribution attached to a histogram data point."""

    bounds: tuple[float, ...]
    bucket_counts: list[int]
    count: int
    sum: Number
    min: Number
    max: Number


@dataclass
class DataPoint:
    """A single aggregated value for one attribute set."""

    value: Number
    attributes: dict[str, Any] = field(default_factory=dict)
    timestamp: float = 0.0
    start_timestamp: float = 0.0
    histogram: HistogramData | None = None


@dataclass
class Measurements:
    """Aggregated data points of one instrument for one collection cycle.

    Exactly one of *int_points* or *double_points* must be given.
    """

    meter_name: str
    instrument_kind: InstrumentKind
    instrument_options: InstrumentOptions
    int_points: list[DataPoint] | None = None
    double_points: list[DataPoint] | None = None
    meter_attributes: dict[str, Any] | None = None

    def __post_init__(self) -> None:
        if (self.int_points is None) == (self.double_points is None):
            raise ValueError(
                "Measurements for %r needs exactly one of int_points or double_points"
                % self.instrument_options.name
            )

    @property
    def is_int(self) -> bool:
        return self.int_points is not None

    @property
    def points(self) -> list[DataPoint]:
        if self.int_points is not None:
            return self.int_points
        assert self.double_points is not None
        return self.double_points

    def to_dict(self) -> list[dict[str, Any]]:
        """Flatten into one plain dictionary per data point."""
        records = []
        for p in self.points:
            record: dict[str, Any] = {
                "meter": self.meter_name,
                "kind": self.instrument_kind.value,
                "name": self.instrument_options.name,
                "unit": self.instrument_options.unit,
                "description": self.instrument_options.description,
                "value": p.value,
                "attributes": p.attributes,
                "timestamp": p.timestamp,
                "start_timestamp": p.start_timestamp,
            }
            if self.meter_attributes:
                record["meter_attributes"] = self.meter_attributes
            if p.histogram is not None:
                record["histogram"] = {
                    "bounds": list(p.histogram.bounds),
                    "bucket_counts": p.histogram.bucket_counts,
                    "count": p.histogram.count,
                    "sum": p.histogram.sum,
                    "min": p.histogram.min,
                    "max": p.histogram.max,
                }
            records.append(record)
        return records
