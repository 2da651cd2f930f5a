"""In-memory exporter that keeps the latest batch for inspection."""

from __future__ import annotations

import threading

from ..metrics.measurement import Measurements
from .base import ExporterCapability


class InMemoryExporter(ExporterCapability):
    """Stores the most recent batch it was given.

    Each export replaces the previous batch. The stored list is the exact
    object handed over by the reader, not a copy.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._data: list[Measurements] = []

    def export_batch(self, batch: list[Measurements]) -> None:
        with self._lock:
            if self._data is not batch:
                self._data.clear()
            self._data = batch

    def fetch(self) -> list[Measurements]:
        """Return the stored batch. Callers must treat it as read-only."""
        with self._lock:
            return self._data

    def teardown(self) -> None:
        with self._lock:
            self._data.clear()
            self._data = []
