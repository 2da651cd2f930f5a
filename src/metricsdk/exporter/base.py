"""Base interface for metric exporters."""

from __future__ import annotations

import abc
import enum

from ..metrics.measurement import Measurements


class ExportResult(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class ExporterCapability(abc.ABC):
    """Destination that accepts ownership of collected batches."""

    @abc.abstractmethod
    def export_batch(self, batch: list[Measurements]) -> None:
        """Take ownership of *batch*. Raise to report a failed export."""
