"""Tests for the configuration module."""

import os
import tempfile

import pytest
import yaml

from metricsdk.config import (
    MetricsConfig,
    load_config,
)


def test_load_config_defaults():
    """Loading from a non-existent file returns defaults."""
    cfg = load_config("/tmp/nonexistent_metricsdk.yaml")
    assert isinstance(cfg, MetricsConfig)
    assert cfg.reader.export_interval_ms == 60000
    assert cfg.reader.export_timeout_ms == 30000
    assert cfg.otel.endpoint == "http://localhost:4318"
    assert cfg.host.enabled is False


def test_load_config_from_yaml():
    """Loading from a YAML file populates values."""
    data = {
        "reader": {
            "export_interval_ms": 5000,
            "export_timeout_ms": 1000,
        },
        "otel": {
            "endpoint": "http://otel:4318",
            "service_name": "my-service",
            "unknown_key": "ignored",
        },
        "host": {"enabled": True, "memory": False},
    }
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        yaml.dump(data, fh)
        path = fh.name

    try:
        cfg = load_config(path)
        assert cfg.reader.export_interval_ms == 5000
        assert cfg.reader.export_timeout_ms == 1000
        assert cfg.otel.endpoint == "http://otel:4318"
        assert cfg.otel.service_name == "my-service"
        assert cfg.host.enabled is True
        assert cfg.host.memory is False
        assert cfg.host.cpu is True
    finally:
        os.unlink(path)


def test_env_override():
    """Environment variables override YAML values."""
    data = {"reader": {"export_interval_ms": 5000}}
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        yaml.dump(data, fh)
        path = fh.name

    try:
        os.environ["METRICSDK_EXPORT_INTERVAL_MS"] = "250"
        os.environ["METRICSDK_OTEL_ENDPOINT"] = "http://env-otel:4318"
        cfg = load_config(path)
        assert cfg.reader.export_interval_ms == 250
        assert cfg.otel.endpoint == "http://env-otel:4318"
    finally:
        os.environ.pop("METRICSDK_EXPORT_INTERVAL_MS", None)
        os.environ.pop("METRICSDK_OTEL_ENDPOINT", None)
        os.unlink(path)


def test_invalid_interval_rejected():
    data = {"reader": {"export_interval_ms": 0}}
    with tempfile.NamedTemporaryFile("w", suffix=".yaml", delete=False) as fh:
        yaml.dump(data, fh)
        path = fh.name

    try:
        with pytest.raises(ValueError):
            load_config(path)
    finally:
        os.unlink(path)
