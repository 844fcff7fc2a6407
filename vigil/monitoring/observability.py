"""Process-wide container orchestrating every observability component.

Collaborators never build components themselves; they go through the
module-level functions below, which resolve the current manager lazily:

    from vigil import create_logger, measure, track_error

    logger = create_logger("terminal")
    result = measure("render", render_frame)
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.exceptions import ObservabilityStateError
from ..core.types import wall_clock
from ..logger import Logger, LoggerConfig, build_logger
from .errors import ErrorRecord, ErrorTracker, ErrorTrackerConfig
from .health import HealthCheck, HealthCheckRegistry, HealthConfig
from .performance import PerformanceConfig, PerformanceMonitor
from .series import MetricSample

T = TypeVar("T")

PERFORMANCE_MODULE = "performance"


@dataclass
class ObservabilityConfig:
    """Central configuration for all observability components."""

    # None builds the logger configuration from the environment.
    logger_config: LoggerConfig | None = None
    errors_config: ErrorTrackerConfig | None = None
    performance_config: PerformanceConfig | None = None
    health_config: HealthConfig | None = None

    periodic_health_checks: bool = True
    register_performance_check: bool = True


class ObservabilityManager:
    """Owns one logger, error tracker, performance monitor and health registry."""

    def __init__(self, config: ObservabilityConfig | None = None):
        """Initialize observability manager.

        Args:
            config: Observability configuration
        """
        self.config = config or ObservabilityConfig()

        self.logger = build_logger(self.config.logger_config)
        self.error_tracker = ErrorTracker(
            self.config.errors_config, logger=self.logger.child("error-tracker")
        )
        self.performance_monitor = PerformanceMonitor(
            self.config.performance_config, logger=self.logger.child("performance-monitor")
        )
        self.health_registry = HealthCheckRegistry(
            self.config.health_config, logger=self.logger.child("health-check")
        )

        if self.config.register_performance_check:
            self.health_registry.register_module(PERFORMANCE_MODULE, self.performance_monitor)

        self._running = False
        self._closed = False

    @property
    def running(self) -> bool:
        return self._running

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Start error capture, performance sampling and periodic health checks."""
        if self._closed:
            raise ObservabilityStateError(
                "Cannot restart an observability manager after shutdown", component="observability"
            )
        if self._running:
            self.logger.warn("Observability system already running")
            return

        self.logger.info("Starting observability system")

        try:
            self.error_tracker.start()
            await self.performance_monitor.start()
            if self.config.periodic_health_checks:
                await self.health_registry.start_periodic_checks()
        except Exception as e:
            self.logger.error("Failed to start observability system", error=str(e))
            await self._stop_components()
            raise

        self._running = True
        self.logger.info("Observability system started")

    async def _stop_components(self) -> None:
        results = await asyncio.gather(
            self.health_registry.shutdown(),
            self.performance_monitor.shutdown(),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, Exception):
                self.logger.error("Error during observability shutdown", error=str(result))

        self.error_tracker.stop()

    async def shutdown(self) -> None:
        """Stop every component and close the log destinations."""
        if self._closed:
            return

        self.logger.info("Shutting down observability system")
        await self._stop_components()
        self._running = False
        self.logger.info("Observability system shutdown complete")
        self.close()

    def close(self) -> None:
        """Release hooks and log destinations of a manager that is not running."""
        if self._running:
            raise ObservabilityStateError(
                "Observability manager is running; use shutdown()", component="observability"
            )
        if self._closed:
            return

        self.error_tracker.stop()
        self.logger.close()
        self._closed = True

    def get_system_overview(self) -> dict[str, Any]:
        """Errors summary, performance metrics and cached health status."""
        overview: dict[str, Any] = {
            "timestamp": wall_clock(),
            "running": self._running,
        }

        try:
            overview["errors"] = self.error_tracker.get_error_summary()
            overview["performance"] = self.performance_monitor.get_metrics()
            overview["health"] = self.health_registry.get_last_status().to_dict()
        except Exception as e:
            self.logger.error("Failed to generate system overview", error=str(e))
            overview["error"] = str(e)

        return overview

    async def __aenter__(self) -> "ObservabilityManager":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.shutdown()


_manager: ObservabilityManager | None = None


def initialize(config: ObservabilityConfig | None = None) -> ObservabilityManager:
    """Install a fresh process-wide manager.

    A previous manager that is not running is closed and replaced.

    Raises:
        ObservabilityStateError: If the current manager is still running
    """
    global _manager

    if _manager is not None:
        if _manager.running:
            raise ObservabilityStateError(
                "Observability manager is running; shut it down before re-initializing",
                component="observability",
            )
        _manager.close()

    _manager = ObservabilityManager(config)
    return _manager


def get_manager() -> ObservabilityManager:
    """Return the process-wide manager, building a default one on first use."""
    global _manager

    if _manager is None:
        _manager = ObservabilityManager()
    return _manager


async def shutdown() -> None:
    """Shut down and forget the process-wide manager."""
    global _manager

    manager, _manager = _manager, None
    if manager is not None:
        await manager.shutdown()


def create_logger(module_name: str) -> Logger:
    """Create a logger for a collaborating module.

    Args:
        module_name: Module tag attached to every entry

    Returns:
        Child of the process-wide root logger
    """
    return get_manager().logger.child(module_name)


def record_metric(name: str, value: float, metadata: Mapping[str, Any] | None = None) -> MetricSample | None:
    """Record a custom metric sample.

    Args:
        name: Metric name; a new series is created on first use
        value: Measured value
        metadata: Extra fields stored with the sample

    Returns:
        The stored sample, or None when performance monitoring is disabled
    """
    return get_manager().performance_monitor.record_metric(name, value, metadata)


def measure(name: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
    """Call ``fn`` and record its duration in milliseconds under ``name``.

    Args:
        name: Metric name for the duration samples
        fn: Operation to time
        *args: Positional arguments for ``fn``
        **kwargs: Keyword arguments for ``fn``

    Returns:
        Whatever ``fn`` returns; its exceptions propagate unchanged
    """
    return get_manager().performance_monitor.measure(name, fn, *args, **kwargs)


async def measure_async(
    name: str, fn: Callable[..., Awaitable[T]] | Awaitable[T], *args: Any, **kwargs: Any
) -> T:
    """Await ``fn`` and record its duration in milliseconds under ``name``.

    Args:
        name: Metric name for the duration samples
        fn: Coroutine function or awaitable to time
        *args: Positional arguments for ``fn``
        **kwargs: Keyword arguments for ``fn``

    Returns:
        The awaited result; exceptions propagate unchanged
    """
    return await get_manager().performance_monitor.measure_async(name, fn, *args, **kwargs)


def track_error(error: Any, context: Mapping[str, Any] | None = None) -> ErrorRecord | None:
    """Report a handled error to the process-wide tracker.

    Args:
        error: Exception, error info mapping, or any object with a useful ``str``
        context: Extra fields stored with the record

    Returns:
        The stored record, or None when error tracking is disabled
    """
    return get_manager().error_tracker.track_error(error, context)


def register_module(name: str, module: HealthCheck | Any) -> None:
    """Register a module's health predicate with the process-wide registry.

    Args:
        name: Module name; an existing registration is replaced
        module: Object with an async ``check()`` method, a mapping with a
            ``check`` entry, or an async callable
    """
    get_manager().health_registry.register_module(name, module)
