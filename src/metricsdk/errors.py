"""Errors raised by the metric collection pipeline."""


class MetricReadError(Exception):
    """Base class for collection and export failures."""


class CollectFailedOnMissingMeterProvider(MetricReadError):
    """The reader is not registered with any meter provider."""


class ExportFailed(MetricReadError):
    """The exporter reported a failure for a batch."""


class ForceFlushTimedOut(MetricReadError):
    """An export was still in flight when the flush deadline passed."""


class ConcurrentCollectNotAllowed(MetricReadError):
    """Another collection is already running on the same reader."""
