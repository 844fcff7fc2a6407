"""Environment-sourced configuration for the observability subsystem."""

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

from .constants import (
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_LOG_FILES,
    DEFAULT_MAX_LOG_SIZE,
    FALLBACK_LOGGER_NAME,
    PRODUCTION_ENV,
)
from .logger.levels import LogLevel

_fallback = logging.getLogger(FALLBACK_LOGGER_NAME)


class ObservabilitySettings(BaseSettings):
    """Settings read from the process environment.

    ``LOG_LEVEL`` is matched case-insensitively; ``APP_ENV=production``
    switches the default log destinations to file only.
    """

    log_level: LogLevel = LogLevel.INFO
    app_env: str = "development"
    log_dir: Path | None = None
    log_max_size: int = DEFAULT_MAX_LOG_SIZE
    log_max_files: int = DEFAULT_MAX_LOG_FILES

    @field_validator("log_level", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        """Accept level names in any case; unknown names fall back to INFO."""
        if v is None or v == "":
            return LogLevel.parse(DEFAULT_LOG_LEVEL)
        try:
            return LogLevel.parse(v)
        except ValueError:
            _fallback.warning("Unknown LOG_LEVEL %r, using %s", v, DEFAULT_LOG_LEVEL)
            return LogLevel.parse(DEFAULT_LOG_LEVEL)

    @field_validator("log_max_files")
    @classmethod
    def validate_max_files(cls, v):
        """Generation count cannot be negative."""
        if v < 0:
            raise ValueError("log_max_files must be zero or greater")
        return v

    @property
    def is_production(self) -> bool:
        """Whether the host runs in production mode."""
        return self.app_env.strip().lower() == PRODUCTION_ENV

    model_config = {"case_sensitive": False}
