"""Local file exporter – writes collected batches to JSONL files."""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

from ..config import LocalExporterConfig
from ..errors import ExportFailed
from ..metrics.measurement import Measurements
from .base import ExporterCapability

logger = logging.getLogger(__name__)


class LocalExporter(ExporterCapability):
    """Writes every data point of a batch as one JSON line.

    One file per day is created inside the configured *output_dir*. The batch
    is dropped once written.
    """

    def __init__(self, config: LocalExporterConfig) -> None:
        self._config = config
        self._output_dir = Path(config.output_dir)
        self._output_dir.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._fh = None
        self._current_date: str | None = None
        logger.info("LocalExporter initialized → %s", self._output_dir)

    def _ensure_file(self) -> None:
        today = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        if self._current_date != today or self._fh is None:
            if self._fh is not None:
                self._fh.close()
            filepath = self._output_dir / f"metrics-{today}.jsonl"
            self._fh = open(filepath, "a", encoding="utf-8")  # noqa: SIM115
            self._current_date = today

    def export_batch(self, batch: list[Measurements]) -> None:
        try:
            with self._lock:
                self._ensure_file()
                assert self._fh is not None
                for m in batch:
                    for record in m.to_dict():
                        self._fh.write(json.dumps(record, default=str) + "\n")
                self._fh.flush()
        except OSError as exc:
            raise ExportFailed(f"writing to {self._output_dir} failed: {exc}") from exc
        finally:
            batch.clear()

    def shutdown(self) -> None:
        with self._lock:
            if self._fh is not None:
                self._fh.close()
                self._fh = None
        logger.info("LocalExporter shut down")
