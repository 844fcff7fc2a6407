"""Error tracking, performance monitoring and health checks.

This package provides:
- Global error capture with bounded history and frequency aggregation
- Bounded-window metric sampling with summary statistics
- A registry of per-module async health predicates
- The process-wide manager that owns one instance of each
"""

from .checks import DiskSpaceCheck, SystemResourcesCheck
from .errors import ErrorRecord, ErrorTracker, ErrorTrackerConfig
from .health import (
    CheckOutcome,
    HealthCheck,
    HealthCheckRegistry,
    HealthConfig,
    HealthStatus,
    ModuleStatus,
    RegistryStatus,
)
from .observability import (
    ObservabilityConfig,
    ObservabilityManager,
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
from .performance import PerformanceConfig, PerformanceMonitor
from .series import MetricSample, MetricSeries, MetricStats, calculate_stats
from .surfaces import (
    AsyncioExceptionSurface,
    ErrorSurface,
    SysExceptHookSurface,
    ThreadExceptHookSurface,
)

__all__ = [
    "AsyncioExceptionSurface",
    "CheckOutcome",
    "DiskSpaceCheck",
    "ErrorRecord",
    "ErrorSurface",
    "ErrorTracker",
    "ErrorTrackerConfig",
    "HealthCheck",
    "HealthCheckRegistry",
    "HealthConfig",
    "HealthStatus",
    "MetricSample",
    "MetricSeries",
    "MetricStats",
    "ModuleStatus",
    "ObservabilityConfig",
    "ObservabilityManager",
    "PerformanceConfig",
    "PerformanceMonitor",
    "RegistryStatus",
    "SysExceptHookSurface",
    "SystemResourcesCheck",
    "ThreadExceptHookSurface",
    "calculate_stats",
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
