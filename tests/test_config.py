"""
Tests for config.py - Configuration.
"""
from pathlib import Path
from unittest.mock import patch

import pytest

from config import Config, ContainerConfig, Environment, ObservabilityConfig, get_config, reload_config


class TestContainerConfig:
    """Tests for ContainerConfig environment defaults."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DI_CONTAINER_NAME", raising=False)
        monkeypatch.delenv("DI_PROPERTIES_FILE", raising=False)
        monkeypatch.delenv("DI_SHUTDOWN_HOOK", raising=False)

        config = ContainerConfig()

        assert config.name == "default"
        assert config.properties_file is None
        assert config.shutdown_hook is False

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("DI_CONTAINER_NAME", "orders")
        monkeypatch.setenv("DI_PROPERTIES_FILE", "/etc/orders.properties")
        monkeypatch.setenv("DI_SHUTDOWN_HOOK", "TRUE")

        config = ContainerConfig()

        assert config.name == "orders"
        assert config.properties_file == Path("/etc/orders.properties")
        assert config.shutdown_hook is True


class TestConfig:
    """Tests for the combined Config."""

    def test_environment(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")

        config = Config()

        assert config.env is Environment.PRODUCTION
        assert config.is_production

    def test_unknown_environment_rejected(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "moon")

        with pytest.raises(ValueError):
            Config()

    def test_to_dict(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "testing")
        config = Config(container=ContainerConfig(name="app", properties_file=None, shutdown_hook=False))

        data = config.to_dict()

        assert data["env"] == "testing"
        assert data["container"] == {"name": "app", "properties_file": None, "shutdown_hook": False}
        assert "sample_rate" in data["observability"]

    def test_setup_observability(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "staging")
        config = Config(
            debug=True,
            observability=ObservabilityConfig(
                service_name="orders",
                otlp_endpoint="",
                tracing_enabled=False,
                sample_rate=0.5,
                log_level="INFO",
                log_json_format=True,
            ),
        )

        with patch("observability.setup_tracing") as setup_tracing, \
                patch("observability.setup_logging") as setup_logging:
            config.setup_observability()

        tracing_config = setup_tracing.call_args.args[0]
        logging_config = setup_logging.call_args.args[0]
        assert tracing_config.enabled is False
        assert tracing_config.environment == "staging"
        assert logging_config.level == "DEBUG"
        assert logging_config.service_name == "orders"

    def test_get_config_is_cached(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "testing")
        first = reload_config()

        assert get_config() is first
        assert reload_config() is not first
