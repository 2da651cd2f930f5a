"""Shutdown gating and flush coordination around an exporter."""

from __future__ import annotations

import logging
import threading
import time

from ..errors import ForceFlushTimedOut
from ..metrics.measurement import Measurements
from .base import ExporterCapability, ExportResult

logger = logging.getLogger(__name__)

_FLUSH_POLL_SECONDS = 0.001


class MetricExporter:
    """Wraps one :class:`ExporterCapability`.

    The export lock is held for the whole duration of a call into the wrapped
    exporter, which makes it the single answer to "is an export running":
    :meth:`force_flush` polls it and :meth:`shutdown` waits on it before
    releasing the wrapped exporter.
    """

    def __init__(self, exporter: ExporterCapability) -> None:
        self._exporter: ExporterCapability | None = exporter
        self._export_lock = threading.Lock()
        self._has_shut_down = threading.Event()
        self._shutdown_guard = threading.Lock()

    @property
    def is_shutdown(self) -> bool:
        return self._has_shut_down.is_set()

    def export_batch(self, batch: list[Measurements]) -> ExportResult:
        """Hand *batch* to the wrapped exporter.

        After shutdown this fails without touching the exporter, and the caller
        keeps ownership of *batch*.
        """
        if self._has_shut_down.is_set():
            return ExportResult.FAILURE
        with self._export_lock:
            exporter = self._exporter
            if exporter is None:
                return ExportResult.FAILURE
            try:
                exporter.export_batch(batch)
            except Exception:
                logger.exception("MetricExporter export_batch failed")
                return ExportResult.FAILURE
        return ExportResult.SUCCESS

    def force_flush(self, timeout_ms: int) -> None:
        """Wait until no export is in flight, for at most *timeout_ms*.

        Raises :class:`ForceFlushTimedOut` when the deadline passes first.
        A zero timeout never waits and always times out.
        """
        deadline = time.monotonic() + timeout_ms / 1000.0
        while time.monotonic() < deadline:
            if self._export_lock.acquire(blocking=False):
                self._export_lock.release()
                return
            time.sleep(_FLUSH_POLL_SECONDS)
        raise ForceFlushTimedOut(f"export still in progress after {timeout_ms} ms")

    def shutdown(self, timeout_ms: int | None = None) -> None:
        """Stop accepting exports. Repeated calls are no-ops.

        An export that already passed the shutdown check runs to completion
        before the wrapped exporter is released. With *timeout_ms* set the
        wait for it is bounded; the running call is never aborted and keeps
        its own reference to the exporter.
        """
        with self._shutdown_guard:
            if self._has_shut_down.is_set():
                return
            self._has_shut_down.set()
        wait = -1 if timeout_ms is None else timeout_ms / 1000.0
        acquired = self._export_lock.acquire(timeout=wait)
        try:
            self._exporter = None
        finally:
            if acquired:
                self._export_lock.release()
        if not acquired:
            logger.warning(
                "MetricExporter shutdown: export still running after %d ms, not waiting for it",
                timeout_ms,
            )
        logger.info("MetricExporter shut down")
