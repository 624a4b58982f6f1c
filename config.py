"""
Componentry - Configuration

Centralized configuration for containers and their observability.
Uses environment variables with sensible defaults.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional
from enum import Enum

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Environment(Enum):
    """Deployment environments."""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value) if value else None


@dataclass
class ContainerConfig:
    """Defaults applied to every ``Container`` built without explicit settings."""
    name: str = field(default_factory=lambda: os.getenv("DI_CONTAINER_NAME", "default"))
    # Properties file loaded into the container when it is constructed
    properties_file: Optional[Path] = field(
        default_factory=lambda: _optional_path(os.getenv("DI_PROPERTIES_FILE"))
    )
    # Register the atexit hook when the container is constructed
    shutdown_hook: bool = field(
        default_factory=lambda: os.getenv("DI_SHUTDOWN_HOOK", "false").lower() == "true"
    )


@dataclass
class ObservabilityConfig:
    """Logging and tracing settings."""
    service_name: str = field(
        default_factory=lambda: os.getenv("OTEL_SERVICE_NAME", "componentry")
    )
    otlp_endpoint: str = field(
        default_factory=lambda: os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT", "")
    )
    tracing_enabled: bool = field(
        default_factory=lambda: os.getenv("OTEL_TRACING_ENABLED", "true").lower() == "true"
    )
    sample_rate: float = field(
        default_factory=lambda: float(os.getenv("OTEL_SAMPLE_RATE", "1.0"))
    )
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper())
    log_json_format: bool = field(
        default_factory=lambda: os.getenv("LOG_FORMAT", "json").lower() == "json"
    )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for diagnostics."""
        return {
            "service_name": self.service_name,
            "otlp_endpoint": self.otlp_endpoint,
            "tracing_enabled": self.tracing_enabled,
            "sample_rate": self.sample_rate,
            "log_level": self.log_level,
            "log_json_format": self.log_json_format,
        }


@dataclass
class Config:
    """Main configuration class combining all sub-configs."""
    env: Environment = field(default_factory=lambda: Environment(os.getenv("ENVIRONMENT", "development")))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    container: ContainerConfig = field(default_factory=ContainerConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.env == Environment.PRODUCTION

    def setup_observability(self) -> None:
        """Configure logging and tracing from this configuration."""
        from observability import LoggingConfig, TracingConfig, setup_logging, setup_tracing

        setup_tracing(TracingConfig(
            service_name=self.observability.service_name,
            otlp_endpoint=self.observability.otlp_endpoint,
            enabled=self.observability.tracing_enabled,
            sample_rate=self.observability.sample_rate,
            environment=self.env.value,
        ))
        setup_logging(LoggingConfig(
            service_name=self.observability.service_name,
            level="DEBUG" if self.debug else self.observability.log_level,
            json_format=self.observability.log_json_format,
            environment=self.env.value,
        ))

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "env": self.env.value,
            "debug": self.debug,
            "container": {
                "name": self.container.name,
                "properties_file": str(self.container.properties_file) if self.container.properties_file else None,
                "shutdown_hook": self.container.shutdown_hook,
            },
            "observability": self.observability.to_dict(),
        }


# Singleton configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create configuration singleton."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from environment."""
    global _config
    load_dotenv(override=True)
    _config = Config()
    return _config
