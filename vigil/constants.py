"""Centralized constants and defaults for the observability subsystem.

Tunables that operators are expected to change are read from the environment
here; everything else is a fixed part of the subsystem's behaviour.
"""

from os import environ

# Logging
DEFAULT_LOG_LEVEL: str = "INFO"
DEFAULT_LOG_DIR_NAME: str = "logs"
DEFAULT_LOG_FILE_NAME: str = environ.get("LOG_FILE_NAME", "vigil.log")
DEFAULT_MAX_LOG_SIZE: int = 10 * 1024 * 1024  # 10MB
DEFAULT_MAX_LOG_FILES: int = 5
DEFAULT_MODULE_NAME: str = "app"
PRODUCTION_ENV: str = "production"
RESERVED_LOG_FIELDS: tuple[str, ...] = ("timestamp", "level", "module", "message")
RESERVED_FIELD_PREFIX: str = "extra_"
FALLBACK_LOGGER_NAME: str = "vigil.fallback"

# Error tracking
DEFAULT_MAX_ERRORS: int = 100
RECENT_ERRORS_IN_SUMMARY: int = 10
TOP_ERRORS_IN_SUMMARY: int = 5
DEFAULT_ERROR_TYPE: str = "error"

# Performance monitoring
DEFAULT_SAMPLE_INTERVAL: float = 1.0  # seconds
DEFAULT_MAX_SAMPLES: int = 300  # 5 minutes at 1s intervals
DEFAULT_SUMMARY_INTERVAL: float = 30.0  # seconds
DEFAULT_FRAME_INTERVAL: float = 1.0 / 60.0  # seconds
FPS_WINDOW_MS: float = 1000.0
SLOW_OPERATION_THRESHOLD_MS: float = 100.0
LOW_FPS_THRESHOLD: float = 30.0
HIGH_MEMORY_THRESHOLD_MB: float = 500.0
BUILTIN_SERIES: tuple[str, ...] = ("fps", "memory", "cpu", "render_time", "input_latency")
BYTES_PER_MB: int = 1024 * 1024

# Health checks
DEFAULT_CHECK_INTERVAL: float = 60.0  # seconds
LOOP_ERROR_BACKOFF: float = 5.0  # seconds
HIGH_RESOURCE_PERCENT: float = 90.0
CRITICAL_DISK_FREE_PERCENT: float = 5.0
