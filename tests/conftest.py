"""Root test configuration."""

import logging

import pytest
import structlog
from fxcore.config import Settings
from fxcore.core.lifecycle import Phase
from fxcore.orchestration import PluginRegistry, SolutionContext
from fxcore.state import EnvironmentStateStore


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def settings():
    """Settings that ignore any local .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def registry():
    return PluginRegistry()


@pytest.fixture
def store():
    return EnvironmentStateStore()


@pytest.fixture
def solution(store):
    """Solution whose create phase is already complete for "dev"."""
    store.mark_phase_complete("dev", Phase.CREATE)
    return SolutionContext(name="todo-app", store=store)
