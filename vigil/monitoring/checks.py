"""Built-in health predicates backed by psutil."""

import os
from typing import Any

import psutil

from ..constants import CRITICAL_DISK_FREE_PERCENT, HIGH_RESOURCE_PERCENT


class SystemResourcesCheck:
    """Host CPU and memory pressure."""

    def __init__(self, threshold_percent: float = HIGH_RESOURCE_PERCENT):
        self.threshold_percent = threshold_percent

    async def check(self) -> dict[str, Any]:
        # interval=None compares against the previous call instead of blocking
        cpu_percent = psutil.cpu_percent(interval=None)
        memory = psutil.virtual_memory()

        metrics = {
            "cpu_percent": cpu_percent,
            "memory_percent": memory.percent,
            "memory_available_gb": memory.available / (1024**3),
        }

        if cpu_percent > self.threshold_percent or memory.percent > self.threshold_percent:
            return {
                "healthy": False,
                "metrics": metrics,
                "message": f"High resource usage (CPU: {cpu_percent}%, Memory: {memory.percent}%)",
            }

        return {
            "healthy": True,
            "metrics": metrics,
            "message": f"Resource usage normal (CPU: {cpu_percent}%, Memory: {memory.percent}%)",
        }


class DiskSpaceCheck:
    """Free space on the volume holding ``path``."""

    def __init__(self, path: str | None = None, min_free_percent: float = CRITICAL_DISK_FREE_PERCENT):
        self.path = path or os.path.abspath(os.sep)
        self.min_free_percent = min_free_percent

    async def check(self) -> dict[str, Any]:
        disk = psutil.disk_usage(self.path)
        free_percent = (disk.free / disk.total) * 100 if disk.total else 0.0
        free_gb = disk.free / (1024**3)

        metrics = {
            "free_percent": free_percent,
            "free_gb": free_gb,
            "total_gb": disk.total / (1024**3),
        }

        if free_percent < self.min_free_percent:
            return {
                "healthy": False,
                "metrics": metrics,
                "message": f"Critical: Only {free_percent:.1f}% ({free_gb:.1f}GB) disk space remaining",
            }

        return {
            "healthy": True,
            "metrics": metrics,
            "message": f"Disk space OK: {free_percent:.1f}% ({free_gb:.1f}GB) available",
        }
