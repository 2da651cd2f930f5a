"""Configuration loading and validation for metricsdk."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml


@dataclass
class ReaderConfig:
    """Periodic reader settings. Defaults match the OpenTelemetry SDK."""

    export_interval_ms: int = 60000
    export_timeout_ms: int = 30000


@dataclass
class LocalExporterConfig:
    """Local JSONL file exporter settings."""

    output_dir: str = "./metrics_data"


@dataclass
class OtelExporterConfig:
    """OpenTelemetry exporter settings."""

    endpoint: str = "http://localhost:4318"
    service_name: str = "metricsdk"
    headers: dict[str, str] = field(default_factory=dict)
    export_interval_ms: int = 10000


@dataclass
class HostMetricsConfig:
    """Host resource gauges recorded through psutil."""

    enabled: bool = False
    cpu: bool = True
    memory: bool = True


@dataclass
class MetricsConfig:
    """Top-level metricsdk configuration."""

    reader: ReaderConfig = field(default_factory=ReaderConfig)
    local_exporter: LocalExporterConfig = field(default_factory=LocalExporterConfig)
    otel: OtelExporterConfig = field(default_factory=OtelExporterConfig)
    host: HostMetricsConfig = field(default_factory=HostMetricsConfig)


_INT_KEYS = {"export_interval_ms", "export_timeout_ms"}


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply environment variable overrides using METRICSDK_ prefix."""
    env_map = {
        "METRICSDK_EXPORT_INTERVAL_MS": ("reader", "export_interval_ms"),
        "METRICSDK_EXPORT_TIMEOUT_MS": ("reader", "export_timeout_ms"),
        "METRICSDK_LOCAL_OUTPUT_DIR": ("local_exporter", "output_dir"),
        "METRICSDK_OTEL_ENDPOINT": ("otel", "endpoint"),
        "METRICSDK_OTEL_SERVICE_NAME": ("otel", "service_name"),
    }
    for env_key, path in env_map.items():
        value = os.environ.get(env_key)
        if value is not None:
            obj = data
            for part in path[:-1]:
                obj = obj.setdefault(part, {})
            final_key = path[-1]
            if final_key in _INT_KEYS:
                obj[final_key] = int(value)
            else:
                obj[final_key] = value
    return data


def _section(cls: type, data: dict[str, Any]) -> Any:
    return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


def _dict_to_config(data: dict[str, Any]) -> MetricsConfig:
    """Convert a raw dictionary to a MetricsConfig dataclass."""
    config = MetricsConfig(
        reader=_section(ReaderConfig, data.get("reader", {})),
        local_exporter=_section(LocalExporterConfig, data.get("local_exporter", {})),
        otel=_section(OtelExporterConfig, data.get("otel", {})),
        host=_section(HostMetricsConfig, data.get("host", {})),
    )
    if config.reader.export_interval_ms <= 0:
        raise ValueError("reader.export_interval_ms must be positive")
    if config.reader.export_timeout_ms < 0:
        raise ValueError("reader.export_timeout_ms must not be negative")
    return config


def load_config(path: str | Path | None = None) -> MetricsConfig:
    """Load configuration from a YAML file with environment overrides.

    Looks for ``metricsdk.yaml`` in the current directory if *path* is None.
    """
    data: dict[str, Any] = {}
    if path is None:
        path = Path("metricsdk.yaml")
    else:
        path = Path(path)

    if path.exists():
        with open(path, encoding="utf-8") as fh:
            loaded = yaml.safe_load(fh)
            if isinstance(loaded, dict):
                data = loaded

    data = _apply_env_overrides(data)
    return _dict_to_config(data)
