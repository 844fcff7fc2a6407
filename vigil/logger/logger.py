"""Leveled, structured, multi-destination logger built on structlog.

Usage:
    root = build_logger(LoggerConfig(level="debug", outputs=("console",)))
    terminal_logger = root.child("terminal")
    terminal_logger.info("Terminal initialized", cols=80, rows=24)
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from rich.console import Console

from ..constants import (
    DEFAULT_LOG_DIR_NAME,
    DEFAULT_LOG_FILE_NAME,
    DEFAULT_MAX_LOG_FILES,
    DEFAULT_MAX_LOG_SIZE,
    DEFAULT_MODULE_NAME,
    FALLBACK_LOGGER_NAME,
    RESERVED_FIELD_PREFIX,
    RESERVED_LOG_FIELDS,
)
from ..core.types import freeze_metadata
from .entry import LogEntry
from .levels import LogLevel
from .sinks import ConsoleSink, Destination, FileSink, LogRouter, LogSink

if TYPE_CHECKING:
    from ..config import ObservabilitySettings

_fallback = logging.getLogger(FALLBACK_LOGGER_NAME)

# "event" is structlog's own key for the message.
_SHELTERED_KEYS = frozenset(RESERVED_LOG_FIELDS) | {"event"}


@dataclass
class LoggerConfig:
    """Configuration for the root logger and every child created from it."""

    level: LogLevel = LogLevel.INFO
    module: str = DEFAULT_MODULE_NAME
    outputs: tuple[Destination, ...] = (Destination.CONSOLE,)
    log_dir: Path = field(default_factory=lambda: Path.cwd() / DEFAULT_LOG_DIR_NAME)
    file_name: str = DEFAULT_LOG_FILE_NAME
    max_log_size: int = DEFAULT_MAX_LOG_SIZE
    max_log_files: int = DEFAULT_MAX_LOG_FILES
    stdout: Console | None = None
    stderr: Console | None = None

    def __post_init__(self) -> None:
        self.level = LogLevel.parse(self.level)
        self.outputs = tuple(Destination(output) for output in self.outputs)
        self.log_dir = Path(self.log_dir)
        if self.max_log_files < 0:
            raise ValueError("max_log_files must be zero or greater")

    @classmethod
    def from_settings(cls, settings: "ObservabilitySettings | None" = None) -> "LoggerConfig":
        """Build a configuration from environment settings.

        Production hosts log to file only; every other environment logs to
        console and file.
        """
        from ..config import ObservabilitySettings

        settings = settings or ObservabilitySettings()
        if settings.is_production:
            outputs: tuple[Destination, ...] = (Destination.FILE,)
        else:
            outputs = (Destination.CONSOLE, Destination.FILE)

        return cls(
            level=settings.log_level,
            outputs=outputs,
            log_dir=settings.log_dir or Path.cwd() / DEFAULT_LOG_DIR_NAME,
            max_log_size=settings.log_max_size,
            max_log_files=settings.log_max_files,
        )


def filter_by_threshold(logger: LogRouter, method_name: str, event_dict: dict) -> dict:
    """Drop entries less severe than the router's threshold."""
    if LogLevel.from_method(method_name) > logger.threshold:
        raise structlog.DropEvent
    return event_dict


def add_level(logger: LogRouter, method_name: str, event_dict: dict) -> dict:
    """Attach the entry's LogLevel."""
    event_dict["level"] = LogLevel.from_method(method_name)
    return event_dict


def render_entry(logger: LogRouter, method_name: str, event_dict: dict) -> tuple:
    """Turn the event dict into a LogEntry; remaining keys become metadata."""
    message = event_dict.pop("event", "")
    entry = LogEntry(
        timestamp=event_dict.pop("timestamp"),
        level=event_dict.pop("level"),
        module=str(event_dict.pop("module", DEFAULT_MODULE_NAME)),
        message=str(message),
        metadata=freeze_metadata(event_dict),
    )
    return (entry,), {}


def _shelter_reserved(fields: dict[str, Any]) -> dict[str, Any]:
    # Standard fields always win; colliding metadata keys are kept under a prefix.
    if not _SHELTERED_KEYS.intersection(fields):
        return fields
    return {
        (f"{RESERVED_FIELD_PREFIX}{key}" if key in _SHELTERED_KEYS else key): value
        for key, value in fields.items()
    }


class Logger(structlog.BoundLoggerBase):
    """Module-scoped logging handle.

    Children created with :meth:`child` share the parent's destinations,
    threshold and rotation settings and only differ in the module tag.
    Emitting never raises: failures are reported on the fallback channel.
    """

    @property
    def router(self) -> LogRouter:
        """The destination router shared by this logger family."""
        return self._logger

    @property
    def module(self) -> str:
        return self._context.get("module", DEFAULT_MODULE_NAME)

    @property
    def level(self) -> LogLevel:
        """Current threshold, shared by every logger of the family."""
        return self._logger.threshold

    @level.setter
    def level(self, value: "str | int | LogLevel") -> None:
        self._logger.threshold = LogLevel.parse(value)

    def is_enabled_for(self, level: "str | int | LogLevel") -> bool:
        """Whether entries at ``level`` would be emitted."""
        return LogLevel.parse(level) <= self._logger.threshold

    def child(self, module_name: str) -> "Logger":
        """Create a logger tagging every entry with ``module_name``."""
        return self.bind(module=module_name)

    def error(self, message: str, metadata: Mapping[str, Any] | None = None, **fields: Any) -> None:
        self._emit("error", message, metadata, fields)

    def warn(self, message: str, metadata: Mapping[str, Any] | None = None, **fields: Any) -> None:
        self._emit("warn", message, metadata, fields)

    warning = warn

    def info(self, message: str, metadata: Mapping[str, Any] | None = None, **fields: Any) -> None:
        self._emit("info", message, metadata, fields)

    def debug(self, message: str, metadata: Mapping[str, Any] | None = None, **fields: Any) -> None:
        self._emit("debug", message, metadata, fields)

    def trace(self, message: str, metadata: Mapping[str, Any] | None = None, **fields: Any) -> None:
        self._emit("trace", message, metadata, fields)

    def _emit(
        self,
        method_name: str,
        message: str,
        metadata: Mapping[str, Any] | None,
        fields: dict[str, Any],
    ) -> None:
        try:
            event_kw = dict(metadata or {})
            event_kw.update(fields)
            args, kwargs = self._process_event(method_name, message, _shelter_reserved(event_kw))
            getattr(self._logger, method_name)(*args, **kwargs)
        except structlog.DropEvent:
            return
        except Exception as e:
            _fallback.warning("Failed to emit log entry %r: %s", message, e)

    def close(self) -> None:
        """Close the shared destinations (affects every logger of the family)."""
        self._logger.close()


def build_logger(config: LoggerConfig | None = None) -> Logger:
    """Create a root logger with its own destinations.

    Args:
        config: Logger configuration; environment settings when omitted

    Returns:
        Root logger tagged with ``config.module``
    """
    config = config or LoggerConfig.from_settings()

    sinks: list[LogSink] = []
    for output in config.outputs:
        if output is Destination.CONSOLE:
            sinks.append(ConsoleSink(config.stdout, config.stderr))
        elif output is Destination.FILE:
            try:
                sinks.append(
                    FileSink(
                        config.log_dir,
                        config.file_name,
                        config.max_log_size,
                        config.max_log_files,
                    )
                )
            except Exception as e:
                _fallback.warning("File logging unavailable in %s: %s", config.log_dir, e)

    router = LogRouter(sinks, threshold=config.level)
    processors = [
        filter_by_threshold,
        add_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        render_entry,
    ]
    return Logger(router, processors, {"module": config.module})
