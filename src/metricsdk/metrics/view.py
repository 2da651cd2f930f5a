"""Temporality and aggregation selection per instrument kind."""

from __future__ import annotations

import enum
from typing import Callable

from .measurement import InstrumentKind


class Temporality(enum.Enum):
    CUMULATIVE = "cumulative"
    DELTA = "delta"


class Aggregation(enum.Enum):
    DROP = "drop"
    SUM = "sum"
    LAST_VALUE = "last_value"
    EXPLICIT_BUCKET_HISTOGRAM = "explicit_bucket_histogram"


TemporalitySelector = Callable[[InstrumentKind], Temporality]
AggregationSelector = Callable[[InstrumentKind], Aggregation]


def default_temporality_for(kind: InstrumentKind) -> Temporality:
    """Every kind is reported cumulatively unless a reader overrides it."""
    return Temporality.CUMULATIVE


def default_aggregation_for(kind: InstrumentKind) -> Aggregation:
    if kind in (InstrumentKind.COUNTER, InstrumentKind.UP_DOWN_COUNTER):
        return Aggregation.SUM
    if kind is InstrumentKind.GAUGE:
        return Aggregation.LAST_VALUE
    return Aggregation.EXPLICIT_BUCKET_HISTOGRAM
