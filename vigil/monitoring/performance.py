"""Performance monitoring with bounded-window sampling and timing instrumentation."""

import asyncio
import inspect
import math
import os
import time
from collections.abc import Awaitable, Callable, Mapping
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, TypeVar

import psutil

from ..constants import (
    BUILTIN_SERIES,
    BYTES_PER_MB,
    DEFAULT_FRAME_INTERVAL,
    DEFAULT_MAX_SAMPLES,
    DEFAULT_SAMPLE_INTERVAL,
    DEFAULT_SUMMARY_INTERVAL,
    FPS_WINDOW_MS,
    HIGH_MEMORY_THRESHOLD_MB,
    LOOP_ERROR_BACKOFF,
    LOW_FPS_THRESHOLD,
    SLOW_OPERATION_THRESHOLD_MS,
)
from ..core.types import Clock, freeze_metadata, wall_clock
from ..logger import Logger, LoggerConfig, build_logger
from .series import MetricSample, MetricSeries, MetricStats, calculate_stats

T = TypeVar("T")


@dataclass
class PerformanceConfig:
    """Configuration for performance monitoring."""

    enabled: bool = True
    sample_interval: float = DEFAULT_SAMPLE_INTERVAL  # seconds
    max_samples: int = DEFAULT_MAX_SAMPLES
    summary_interval: float = DEFAULT_SUMMARY_INTERVAL  # seconds
    frame_interval: float = DEFAULT_FRAME_INTERVAL  # seconds
    frame_ticker_enabled: bool = True  # off when the host drives record_frame() itself
    memory_monitoring_enabled: bool = True
    slow_operation_threshold_ms: float = SLOW_OPERATION_THRESHOLD_MS
    low_fps_threshold: float = LOW_FPS_THRESHOLD
    high_memory_threshold_mb: float = HIGH_MEMORY_THRESHOLD_MB


class PerformanceMonitor:
    """Samples frame rate and process memory and records ad-hoc timings.

    Every periodic activity runs in its own asyncio task; :meth:`stop`
    cancels all of them.
    """

    def __init__(
        self,
        config: PerformanceConfig | None = None,
        logger: Logger | None = None,
        clock: Clock = wall_clock,
        timer: Callable[[], float] = time.perf_counter,
    ):
        """Initialize performance monitor.

        Args:
            config: Performance monitoring configuration
            logger: Logger for monitor events; a console logger when omitted
            clock: Source of sample timestamps (epoch seconds)
            timer: Monotonic clock in seconds used for durations and frames
        """
        self.config = config or PerformanceConfig()
        self.logger = logger or build_logger(LoggerConfig()).child("performance-monitor")
        self._clock = clock
        self._timer = timer

        self.series: dict[str, MetricSeries] = {
            name: MetricSeries(name, self.config.max_samples) for name in BUILTIN_SERIES
        }
        self.custom: dict[str, MetricSeries] = {}

        self._tasks: list[asyncio.Task] = []
        self._marks: dict[str, float] = {}
        self._frame_count = 0
        self._last_frame_time = self._now_ms()
        self._process: psutil.Process | None = None

    def _now_ms(self) -> float:
        return self._timer() * 1000

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        """Start frame, memory and summary sampling."""
        if not self.config.enabled:
            self.logger.info("Performance monitoring disabled")
            return
        if self._tasks:
            self.logger.warn("Performance monitoring already running")
            return

        self.logger.info("Starting performance monitoring")

        if self.config.frame_ticker_enabled:
            self.reset_frame_counter()
            self._spawn(self.record_frame, self.config.frame_interval, "fps")

        if self.config.memory_monitoring_enabled and self._read_memory_mb() is not None:
            self._spawn(self.sample_memory, self.config.sample_interval, "memory")

        self._spawn(self.log_current_metrics, self.config.summary_interval, "summary")

    async def stop(self) -> None:
        """Cancel every sampling task this monitor started."""
        if not self._tasks:
            return

        self.logger.info("Stopping performance monitoring")
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            with suppress(asyncio.CancelledError):
                await task

    def _spawn(self, action: Callable[[], Any], interval: float, label: str) -> None:
        task = asyncio.create_task(self._periodic(action, interval, label), name=f"vigil-{label}")
        self._tasks.append(task)

    async def _periodic(self, action: Callable[[], Any], interval: float, label: str) -> None:
        while True:
            try:
                await asyncio.sleep(interval)
                action()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error("Performance sampling failed", task=label, error=str(e))
                await asyncio.sleep(LOOP_ERROR_BACKOFF)

    def reset_frame_counter(self, now_ms: float | None = None) -> None:
        """Restart FPS measurement from ``now_ms``."""
        self._frame_count = 0
        self._last_frame_time = self._now_ms() if now_ms is None else now_ms

    def record_frame(self, now_ms: float | None = None) -> int | None:
        """Count one rendered frame.

        Once at least one second has elapsed since the last emission the
        frame rate is recorded and the counter restarts.

        Args:
            now_ms: Frame timestamp in milliseconds; the monitor's timer when omitted

        Returns:
            The emitted FPS value, or None while the window is still open
        """
        now = self._now_ms() if now_ms is None else now_ms
        self._frame_count += 1
        elapsed = now - self._last_frame_time

        if elapsed < FPS_WINDOW_MS:
            return None

        # Half-up rounding.
        fps = math.floor(self._frame_count * 1000 / elapsed + 0.5)
        self.record_sample("fps", fps)
        self._frame_count = 0
        self._last_frame_time = now
        return fps

    def _get_process(self) -> psutil.Process:
        if self._process is None:
            self._process = psutil.Process(os.getpid())
        return self._process

    def _read_memory_mb(self) -> int | None:
        try:
            return round(self._get_process().memory_info().rss / BYTES_PER_MB)
        except (psutil.Error, OSError) as e:
            self.logger.debug("Process memory unavailable", error=str(e))
            return None

    def _read_cpu_percent(self) -> float | None:
        try:
            return self._get_process().cpu_percent(interval=None)
        except (psutil.Error, OSError):
            return None

    def sample_memory(self) -> int | None:
        """Record process memory (MB) and CPU usage.

        Returns:
            Resident memory in MB, or None when it cannot be read
        """
        memory_mb = self._read_memory_mb()
        if memory_mb is None:
            return None

        self.record_sample("memory", memory_mb)
        cpu = self._read_cpu_percent()
        if cpu is not None:
            self.record_sample("cpu", cpu)

        if memory_mb > self.config.high_memory_threshold_mb:
            self.logger.warn("High memory usage detected", memory_mb=memory_mb)

        return memory_mb

    def record_sample(self, series: str, value: float) -> MetricSample:
        """Append a sample to a built-in series, creating it if needed."""
        target = self.series.get(series)
        if target is None:
            target = self.series[series] = MetricSeries(series, self.config.max_samples)

        sample = MetricSample(timestamp=self._clock(), value=value)
        target.append(sample)
        return sample

    def record_metric(
        self, name: str, value: float, metadata: Mapping[str, Any] | None = None
    ) -> MetricSample | None:
        """Append a sample to a custom series.

        Args:
            name: Metric name
            value: Measured value
            metadata: Extra fields stored with the sample

        Returns:
            The stored sample, or None when monitoring is disabled
        """
        if not self.config.enabled:
            return None

        target = self.custom.get(name)
        if target is None:
            target = self.custom[name] = MetricSeries(name, self.config.max_samples)

        sample = MetricSample(timestamp=self._clock(), value=value, metadata=freeze_metadata(metadata))
        target.append(sample)
        return sample

    def _warn_if_slow(self, name: str, duration_ms: float) -> None:
        if duration_ms > self.config.slow_operation_threshold_ms:
            self.logger.warn("Slow operation detected", name=name, duration_ms=round(duration_ms, 2))

    def measure(self, name: str, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run ``fn`` and record its duration in milliseconds under ``name``.

        A failing call is recorded with ``error=True`` and its exception
        re-raised unchanged.
        """
        start = self._now_ms()
        try:
            result = fn(*args, **kwargs)
        except BaseException:
            self.record_metric(name, self._now_ms() - start, {"error": True})
            raise

        duration = self._now_ms() - start
        self.record_metric(name, duration)
        self._warn_if_slow(name, duration)
        return result

    async def measure_async(
        self,
        name: str,
        fn: Callable[..., Awaitable[T]] | Awaitable[T],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Await ``fn`` (a coroutine function or an awaitable) and record its duration.

        Same failure semantics as :meth:`measure`; cancellation is recorded
        as a failure too.
        """
        start = self._now_ms()
        try:
            result = fn(*args, **kwargs) if callable(fn) else fn
            if inspect.isawaitable(result):
                result = await result
        except BaseException:
            self.record_metric(name, self._now_ms() - start, {"error": True})
            raise

        duration = self._now_ms() - start
        self.record_metric(name, duration)
        self._warn_if_slow(name, duration)
        return result

    def mark(self, name: str) -> float:
        """Remember the current time under ``name``.

        Returns:
            The mark's timestamp in milliseconds
        """
        now = self._now_ms()
        self._marks[name] = now
        return now

    def measure_between(self, name: str, start_mark: str, end_mark: str | None = None) -> float | None:
        """Record the time between two marks (or a mark and now) as metric ``name``.

        Returns:
            Duration in milliseconds, or None if a mark is unknown
        """
        start = self._marks.get(start_mark)
        end = self._marks.get(end_mark) if end_mark is not None else self._now_ms()

        if start is None or end is None:
            self.logger.error(
                "Failed to measure between marks",
                name=name,
                start_mark=start_mark,
                end_mark=end_mark,
                error="unknown mark",
            )
            return None

        duration = end - start
        self.record_metric(name, duration)
        return duration

    def clear_marks(self) -> None:
        self._marks.clear()

    def calculate_stats(self, samples: Any) -> MetricStats | None:
        """Statistics for a series, sample list or value list (None when empty)."""
        return calculate_stats(samples)

    def get_metrics(self) -> dict[str, Any]:
        """Statistics for every built-in and custom series."""
        metrics: dict[str, Any] = {"timestamp": self._clock()}
        for name, series in self.series.items():
            metrics[name] = calculate_stats(series)
        metrics["custom"] = {name: calculate_stats(series) for name, series in self.custom.items()}
        return metrics

    def log_current_metrics(self) -> None:
        """Log the periodic performance summary."""
        metrics = self.get_metrics()
        fps: MetricStats | None = metrics["fps"]
        memory: MetricStats | None = metrics["memory"]

        self.logger.info(
            "Performance metrics",
            fps=f"{fps.avg:.1f}" if fps else None,
            memory=f"{memory.avg:.0f}MB" if memory else None,
            custom_metrics=len(metrics["custom"]),
        )

    def get_health_status(self) -> dict[str, Any]:
        """Flag low frame rate and high memory over the retained window.

        Returns:
            ``healthy`` flag, list of issues and headline metrics
        """
        fps = calculate_stats(self.series["fps"])
        memory = calculate_stats(self.series["memory"])
        issues: list[dict[str, Any]] = []

        if fps and fps.avg < self.config.low_fps_threshold:
            issues.append(
                {
                    "type": "performance",
                    "severity": "warning",
                    "message": "Low FPS detected",
                    "value": f"{fps.avg:.1f}",
                }
            )

        if memory and memory.avg > self.config.high_memory_threshold_mb:
            issues.append(
                {
                    "type": "memory",
                    "severity": "warning",
                    "message": "High memory usage",
                    "value": f"{memory.avg:.0f}MB",
                }
            )

        return {
            "healthy": not issues,
            "issues": issues,
            "metrics": {
                "fps": fps.avg if fps else None,
                "memory": memory.avg if memory else None,
            },
        }

    async def check(self) -> dict[str, Any]:
        """Health predicate so the monitor can be registered as a module."""
        status = self.get_health_status()
        message = "; ".join(issue["message"] for issue in status["issues"]) or None
        return {"healthy": status["healthy"], "metrics": status["metrics"], "message": message}

    async def shutdown(self) -> None:
        """Shutdown performance monitor."""
        await self.stop()
        self.logger.info("Performance monitor shutdown")
