"""vigil - embedded observability for long-running host applications."""

from .config import ObservabilitySettings
from .core.exceptions import HealthCheckError, ObservabilityError, ObservabilityStateError
from .logger import Logger, LoggerConfig, LogLevel, build_logger
from .monitoring import (
    ErrorTracker,
    ErrorTrackerConfig,
    HealthCheckRegistry,
    HealthConfig,
    ObservabilityConfig,
    ObservabilityManager,
    PerformanceConfig,
    PerformanceMonitor,
    create_logger,
    get_manager,
    initialize,
    measure,
    measure_async,
    record_metric,
    register_module,
    shutdown,
    track_error,
)

__version__ = "1.0.0"

__all__ = [
    "ErrorTracker",
    "ErrorTrackerConfig",
    "HealthCheckError",
    "HealthCheckRegistry",
    "HealthConfig",
    "LogLevel",
    "Logger",
    "LoggerConfig",
    "ObservabilityConfig",
    "ObservabilityError",
    "ObservabilityManager",
    "ObservabilitySettings",
    "ObservabilityStateError",
    "PerformanceConfig",
    "PerformanceMonitor",
    "build_logger",
    "create_logger",
    "get_manager",
    "initialize",
    "measure",
    "measure_async",
    "record_metric",
    "register_module",
    "shutdown",
    "track_error",
]
