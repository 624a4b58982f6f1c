"""
Componentry - Test Configuration

Pytest fixtures and configuration for all tests.
"""
from pathlib import Path
from typing import Dict, Generator, List

import pytest

from config import ContainerConfig
from di import Container, ContainerState
from observability.logging import LoggingConfig, setup_logging


class Recorder:
    """Collects construction and hook events in the order they happen."""

    def __init__(self):
        self.events: List[str] = []

    def record(self, event: str) -> None:
        self.events.append(event)

    def builder(self, instance_id: str):
        """Builder that records its own invocation and returns a fresh object."""
        def build():
            self.record(f"build:{instance_id}")
            return {"id": instance_id, "serial": len(self.events)}
        return build


# =============================================================================
# Container Fixtures
# =============================================================================

@pytest.fixture
def container_config() -> ContainerConfig:
    """Container settings that ignore the process environment."""
    return ContainerConfig(name="test", properties_file=None, shutdown_hook=False)


@pytest.fixture
def container(container_config) -> Generator[Container, None, None]:
    """Fresh, unconfigured container; closed afterwards if still initialized."""
    c = Container(config=container_config)
    yield c
    if c.state is ContainerState.INITIALIZED:
        c.close()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def sample_relations() -> Dict[str, List[str]]:
    """Provider -> dependants relations with a single cycle (1 -> 3 -> 1)."""
    return {
        "1": ["2", "3"],
        "2": ["4", "5"],
        "3": ["6", "1"],
    }


@pytest.fixture
def properties_file(tmp_path) -> Path:
    """Properties file on disk."""
    path = tmp_path / "app.properties"
    path.write_text(
        "# database\n"
        "db.url=postgresql://localhost/app\n"
        "db.pool_size=8\n"
        "greeting=hello world\n",
        encoding="utf-8",
    )
    return path


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Configure pytest markers and logging."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "concurrency: marks multi-threaded tests")
    config.addinivalue_line("markers", "property: marks property-based tests using Hypothesis")
    config.addinivalue_line("markers", "stateful: marks stateful property tests")

    setup_logging(LoggingConfig(
        service_name="componentry-tests",
        level="WARNING",
        json_format=False,
        log_to_file=False,
        environment="testing",
    ))
