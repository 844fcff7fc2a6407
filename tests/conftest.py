"""Shared fixtures and test configuration for pytest."""

import io
from pathlib import Path

import pytest
from rich.console import Console

from vigil.logger import Destination, LoggerConfig, build_logger
from vigil.monitoring import (
    ErrorTrackerConfig,
    HealthConfig,
    ObservabilityConfig,
    PerformanceConfig,
    observability,
)


def make_console() -> Console:
    """Console capturing plain text into a string buffer."""
    return Console(
        file=io.StringIO(),
        width=400,
        color_system=None,
        highlight=False,
        soft_wrap=True,
        emoji=False,
    )


@pytest.fixture
def log_dir(tmp_path) -> Path:
    """Log directory that does not exist yet."""
    return tmp_path / "logs"


@pytest.fixture
def stdout_console():
    return make_console()


@pytest.fixture
def stderr_console():
    return make_console()


@pytest.fixture
def logger_config(log_dir, stdout_console, stderr_console):
    """Console and file logging at TRACE into a temporary directory."""
    return LoggerConfig(
        level="trace",
        outputs=(Destination.CONSOLE, Destination.FILE),
        log_dir=log_dir,
        stdout=stdout_console,
        stderr=stderr_console,
    )


@pytest.fixture
def logger(logger_config):
    root = build_logger(logger_config)
    yield root
    root.close()


@pytest.fixture
def quiet_logger():
    """Logger whose console output is discarded."""
    root = build_logger(LoggerConfig(level="trace", stdout=make_console(), stderr=make_console()))
    yield root
    root.close()


@pytest.fixture
def manager_config(logger_config):
    """Manager configuration without real-time samplers or hook installation."""
    return ObservabilityConfig(
        logger_config=logger_config,
        errors_config=ErrorTrackerConfig(surfaces=[]),
        performance_config=PerformanceConfig(
            frame_ticker_enabled=False,
            memory_monitoring_enabled=False,
        ),
        health_config=HealthConfig(check_interval=0.05),
        periodic_health_checks=False,
    )


@pytest.fixture(autouse=True)
def reset_manager():
    """Forget the process-wide manager after every test."""
    yield
    manager = observability._manager
    observability._manager = None
    if manager is not None and not manager.running:
        manager.close()
