"""Health check registry coordinating per-module async predicates."""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable, Mapping
from contextlib import suppress
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..constants import DEFAULT_CHECK_INTERVAL, LOOP_ERROR_BACKOFF
from ..core.exceptions import HealthCheckError
from ..core.types import Clock, wall_clock
from ..logger import Logger, LoggerConfig, build_logger


class HealthStatus(str, Enum):
    """Aggregate registry status."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNKNOWN = "unknown"


class HealthCheck(Protocol):
    """Capability a module exposes to report its own operational status."""

    async def check(self) -> Any: ...


class CheckOutcome(BaseModel):
    """What a health predicate reported."""

    model_config = ConfigDict(extra="ignore", from_attributes=True)

    healthy: bool = True
    metrics: dict[str, Any] | None = None
    message: str | None = None

    @field_validator("healthy", mode="before")
    @classmethod
    def only_false_is_unhealthy(cls, value: Any) -> bool:
        return value is not False

    @field_validator("metrics", mode="before")
    @classmethod
    def coerce_metrics(cls, value: Any) -> dict[str, Any] | None:
        if value is None:
            return None
        try:
            return {str(key): item for key, item in dict(value).items()}
        except (TypeError, ValueError):
            # Unusable metrics are dropped; they never decide health.
            return None

    @field_validator("message", mode="before")
    @classmethod
    def coerce_message(cls, value: Any) -> str | None:
        return None if value is None else str(value)


@dataclass
class HealthConfig:
    """Configuration for the health check registry."""

    enabled: bool = True
    check_interval: float = DEFAULT_CHECK_INTERVAL  # seconds
    check_timeout: float | None = None  # None waits for the predicate indefinitely
    concurrent_checks: bool = False
    register_builtin_checks: bool = False


@dataclass
class ModuleStatus:
    """Snapshot of one module's last health check."""

    name: str
    healthy: bool | None
    timestamp: float | None = None
    metrics: dict[str, Any] = field(default_factory=dict)
    message: str | None = None
    check_duration_ms: float | None = None
    error: str | None = None
    consecutive_failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class RegistryStatus:
    """Aggregate health of every registered module."""

    timestamp: float
    overall: HealthStatus
    modules: list[ModuleStatus]
    total_modules: int
    healthy_modules: int = 0
    unhealthy_modules: int = 0

    @property
    def unhealthy_names(self) -> list[str]:
        return [m.name for m in self.modules if m.healthy is False]

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "overall": self.overall.value,
            "modules": [m.to_dict() for m in self.modules],
            "total_modules": self.total_modules,
            "healthy_modules": self.healthy_modules,
            "unhealthy_modules": self.unhealthy_modules,
        }


@dataclass
class ModuleHealth:
    """Registry bookkeeping for one module."""

    name: str
    check: Callable[[], Awaitable[Any] | Any]
    last_check: float | None = None
    last_status: ModuleStatus | None = None
    consecutive_failures: int = 0
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


def _resolve_check(module: Any) -> Callable[[], Awaitable[Any] | Any]:
    if isinstance(module, Mapping):
        module = module.get("check")
        if callable(module):
            return module
    else:
        check = getattr(module, "check", None)
        if callable(check):
            return check
        if callable(module):
            return module
    raise TypeError("Health module must provide a callable 'check'")


def _parse_outcome(name: str, result: Any) -> CheckOutcome:
    if result is None:
        return CheckOutcome()
    if isinstance(result, CheckOutcome):
        return result
    if isinstance(result, bool):
        return CheckOutcome(healthy=result)
    if isinstance(result, str):
        return CheckOutcome(message=result)
    try:
        return CheckOutcome.model_validate(result)
    except ValidationError as e:
        raise HealthCheckError("Invalid health check result", module=name, cause=e) from e


class HealthCheckRegistry:
    """Central registry of named modules and their health predicates."""

    def __init__(
        self,
        config: HealthConfig | None = None,
        logger: Logger | None = None,
        clock: Clock = wall_clock,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """Initialize health check registry.

        Args:
            config: Health check configuration
            logger: Logger for registry events; a console logger when omitted
            clock: Source of status timestamps (epoch seconds)
            timer: Monotonic clock in seconds used for check durations
        """
        self.config = config or HealthConfig()
        self.logger = logger or build_logger(LoggerConfig()).child("health-check")
        self._clock = clock
        self._timer = timer
        self._modules: dict[str, ModuleHealth] = {}
        self._check_task: asyncio.Task | None = None

        if self.config.register_builtin_checks:
            self._register_builtin_checks()

    def _register_builtin_checks(self) -> None:
        from .checks import DiskSpaceCheck, SystemResourcesCheck

        self.register_module("system_resources", SystemResourcesCheck())
        self.register_module("disk_space", DiskSpaceCheck())

    @property
    def modules(self) -> Mapping[str, ModuleHealth]:
        return dict(self._modules)

    @property
    def running(self) -> bool:
        return self._check_task is not None

    def register_module(self, name: str, module: HealthCheck | Any) -> None:
        """Register a module's health predicate.

        Args:
            name: Module name
            module: Object with an async ``check()`` method, a mapping with a
                ``check`` entry, or an async callable
        """
        check = _resolve_check(module)
        if name in self._modules:
            self.logger.warn("Module already registered, overwriting", name=name)

        self._modules[name] = ModuleHealth(name=name, check=check)
        self.logger.info("Module registered for health checks", name=name)

    def unregister_module(self, name: str) -> bool:
        """Remove a module.

        Returns:
            True if the module was registered
        """
        if self._modules.pop(name, None) is None:
            self.logger.debug("Module not registered, nothing to remove", name=name)
            return False

        self.logger.info("Module unregistered from health checks", name=name)
        return True

    async def check_module(self, name: str) -> ModuleStatus | None:
        """Run one module's predicate and update its failure counter.

        Returns:
            The module's new status, or None if no such module is registered
        """
        module = self._modules.get(name)
        if module is None:
            self.logger.error("Module not found", name=name)
            return None

        async with module.lock:
            return await self._run_check(module)

    async def _invoke(self, module: ModuleHealth) -> Any:
        result = module.check()
        if not inspect.isawaitable(result):
            return result
        if self.config.check_timeout is None:
            return await result
        return await asyncio.wait_for(result, timeout=self.config.check_timeout)

    async def _run_check(self, module: ModuleHealth) -> ModuleStatus:
        start = self._timer()

        try:
            result = await self._invoke(module)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if isinstance(e, TimeoutError):
                error = f"Check timed out after {self.config.check_timeout}s"
            else:
                error = str(e) or type(e).__name__

            module.consecutive_failures += 1
            self.logger.error("Health check error", name=module.name, error=error)
            status = ModuleStatus(
                name=module.name,
                healthy=False,
                timestamp=self._clock(),
                error=error,
                check_duration_ms=(self._timer() - start) * 1000,
                consecutive_failures=module.consecutive_failures,
            )
            module.last_check = status.timestamp
            module.last_status = status
            return status

        try:
            outcome = _parse_outcome(module.name, result)
        except HealthCheckError as e:
            self.logger.warn("Ignoring unreadable health check result", name=module.name, error=str(e))
            outcome = CheckOutcome()

        healthy = outcome.healthy
        if healthy:
            module.consecutive_failures = 0
        else:
            module.consecutive_failures += 1
            self.logger.warn(
                "Module health check failed",
                name=module.name,
                consecutive_failures=module.consecutive_failures,
                detail=outcome.message,
            )

        status = ModuleStatus(
            name=module.name,
            healthy=healthy,
            timestamp=self._clock(),
            metrics=dict(outcome.metrics or {}),
            message=outcome.message,
            check_duration_ms=(self._timer() - start) * 1000,
            consecutive_failures=module.consecutive_failures,
        )
        module.last_check = status.timestamp
        module.last_status = status
        return status

    async def check_all(self) -> list[ModuleStatus]:
        """Evaluate every registered module, sequentially unless configured otherwise."""
        names = list(self._modules)

        if self.config.concurrent_checks:
            results = await asyncio.gather(*(self.check_module(name) for name in names))
        else:
            results = [await self.check_module(name) for name in names]

        return [status for status in results if status is not None]

    async def get_status(self) -> RegistryStatus:
        """Run every check and aggregate the results."""
        checks = await self.check_all()
        healthy = sum(1 for c in checks if c.healthy)

        return RegistryStatus(
            timestamp=self._clock(),
            overall=HealthStatus.HEALTHY if all(c.healthy for c in checks) else HealthStatus.DEGRADED,
            modules=checks,
            total_modules=len(self._modules),
            healthy_modules=healthy,
            unhealthy_modules=len(checks) - healthy,
        )

    def get_last_status(self) -> RegistryStatus:
        """Aggregate the cached results without running any check."""
        modules = [
            module.last_status or ModuleStatus(name=name, healthy=None, message="Not yet checked")
            for name, module in self._modules.items()
        ]

        if all(m.healthy is True for m in modules):
            overall = HealthStatus.HEALTHY
        elif any(m.healthy is False for m in modules):
            overall = HealthStatus.DEGRADED
        else:
            overall = HealthStatus.UNKNOWN

        return RegistryStatus(
            timestamp=self._clock(),
            overall=overall,
            modules=modules,
            total_modules=len(self._modules),
            healthy_modules=sum(1 for m in modules if m.healthy is True),
            unhealthy_modules=sum(1 for m in modules if m.healthy is False),
        )

    async def run_periodic_check(self) -> RegistryStatus:
        """One iteration of the periodic loop."""
        status = await self.get_status()
        if status.unhealthy_modules > 0:
            self.logger.warn(
                "Unhealthy modules detected",
                unhealthy=status.unhealthy_modules,
                modules=status.unhealthy_names,
            )
        return status

    async def start_periodic_checks(self) -> None:
        """Start re-evaluating every module each ``check_interval`` seconds."""
        if not self.config.enabled:
            self.logger.info("Health checks disabled")
            return
        if self._check_task is not None:
            self.logger.warn("Periodic checks already running")
            return

        self._check_task = asyncio.create_task(self._monitoring_loop(), name="vigil-health")
        self.logger.info("Starting periodic health checks", interval=self.config.check_interval)

    async def stop_periodic_checks(self) -> None:
        """Cancel the periodic loop."""
        if self._check_task is None:
            return

        task, self._check_task = self._check_task, None
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

        self.logger.info("Stopped periodic health checks")

    async def _monitoring_loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.config.check_interval)
                await self.run_periodic_check()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("Health monitoring failed", error=str(e))
                await asyncio.sleep(LOOP_ERROR_BACKOFF)

    async def shutdown(self) -> None:
        """Shutdown health check registry."""
        await self.stop_periodic_checks()
        self.logger.info("Health check registry shutdown")
