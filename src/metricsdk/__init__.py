"""metricsdk: collection and export pipeline for in-process metrics."""

__version__ = "0.1.0"
