"""Centralized error tracking and aggregation.

Errors reach the tracker two ways: global surfaces report failures nobody
handled, and collaborators report handled ones through :meth:`ErrorTracker.track_error`.
Both end up in a bounded history plus a per-message frequency table.
"""

import threading
import traceback
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from ..constants import (
    DEFAULT_ERROR_TYPE,
    DEFAULT_MAX_ERRORS,
    RECENT_ERRORS_IN_SUMMARY,
    TOP_ERRORS_IN_SUMMARY,
)
from ..core.types import EMPTY_METADATA, Clock, Metadata, freeze_metadata, wall_clock
from ..logger import Logger, LoggerConfig, build_logger
from .surfaces import ErrorSurface, default_surfaces

# Keys of an error mapping that describe the error itself rather than its context.
_ERROR_FIELDS = ("message", "stack", "type", "timestamp", "reason")


@dataclass
class ErrorTrackerConfig:
    """Configuration for error tracking."""

    enabled: bool = True
    max_errors: int = DEFAULT_MAX_ERRORS
    surfaces: list[ErrorSurface] | None = None  # None installs the built-in surfaces

    def __post_init__(self) -> None:
        if self.max_errors < 1:
            raise ValueError("max_errors must be at least 1")


@dataclass(frozen=True)
class ErrorRecord:
    """A normalized, tracked error."""

    timestamp: float
    message: str
    type: str = DEFAULT_ERROR_TYPE
    stack: str | None = None
    context: Metadata = field(default_factory=lambda: EMPTY_METADATA)

    def to_dict(self) -> dict[str, Any]:
        """Flatten the record with its context merged in."""
        record: dict[str, Any] = {
            "timestamp": self.timestamp,
            "message": self.message,
            "type": self.type,
            "stack": self.stack,
        }
        for key, value in self.context.items():
            record.setdefault(key, value)
        return record


class ErrorTracker:
    """Bounded error history with per-message frequency counts."""

    def __init__(
        self,
        config: ErrorTrackerConfig | None = None,
        logger: Logger | None = None,
        clock: Clock = wall_clock,
    ):
        """Initialize error tracker.

        Args:
            config: Error tracking configuration
            logger: Logger for tracker events; a console logger when omitted
            clock: Source of record timestamps (epoch seconds)
        """
        self.config = config or ErrorTrackerConfig()
        self.logger = logger or build_logger(LoggerConfig()).child("error-tracker")
        self._clock = clock
        self._errors: deque[ErrorRecord] = deque(maxlen=self.config.max_errors)
        self._counts: dict[str, int] = {}
        self._installed: list[ErrorSurface] = []
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def started(self) -> bool:
        return bool(self._installed)

    @property
    def errors(self) -> list[ErrorRecord]:
        """Snapshot of the tracked history, oldest first."""
        with self._lock:
            return list(self._errors)

    @property
    def error_counts(self) -> Mapping[str, int]:
        """Read-only view of the per-message counts."""
        return MappingProxyType(self._counts)

    def start(self) -> None:
        """Install every available global error surface."""
        if not self.config.enabled:
            self.logger.info("Error tracking disabled")
            return
        if self._installed:
            self.logger.warn("Error tracking already started")
            return

        self.logger.info("Starting error tracking")

        surfaces = self.config.surfaces if self.config.surfaces is not None else default_surfaces()
        for surface in surfaces:
            try:
                if not surface.is_available():
                    self.logger.debug("Error surface unavailable", surface=surface.name)
                    continue
                surface.install(self.handle_global_error)
                self._installed.append(surface)
                self.logger.debug("Error surface installed", surface=surface.name)
            except Exception as e:
                self.logger.warn("Failed to install error surface", surface=surface.name, error=str(e))

    def stop(self) -> None:
        """Uninstall the surfaces and restore the handlers they replaced."""
        if not self._installed:
            return

        for surface in reversed(self._installed):
            try:
                surface.uninstall()
            except Exception as e:
                self.logger.warn("Failed to uninstall error surface", surface=surface.name, error=str(e))
        self._installed = []
        self.logger.info("Stopped error tracking")

    def handle_global_error(self, info: Mapping[str, Any]) -> None:
        """Track and log a failure reported by a global surface."""
        error = {"timestamp": self._clock(), **info}
        self.track_error(error)
        self.logger.error("Global error caught", error)

    def track_error(self, error: Any, context: Mapping[str, Any] | None = None) -> ErrorRecord | None:
        """Record an error.

        Args:
            error: Exception, error info mapping, or any object with a useful ``str``
            context: Extra fields stored with the record; a ``type`` key
                overrides the record's type tag

        Returns:
            The stored record, or None when tracking is disabled
        """
        if not self.config.enabled:
            return None

        record = self._normalize(error, context)
        # Thread surfaces report from the failing worker thread.
        with self._lock:
            self._errors.append(record)
            count = self._counts.get(record.message, 0) + 1
            self._counts[record.message] = count

        self.logger.error("Error tracked", type=record.type, error=record.message, count=count)
        return record

    def _normalize(self, error: Any, context: Mapping[str, Any] | None) -> ErrorRecord:
        extra = dict(context or {})
        error_type = extra.pop("type", None)
        stack: str | None = None

        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            if error.__traceback__ is not None:
                stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
            error_type = error_type or getattr(error, "type", None)
            fields: dict[str, Any] = {"exception": type(error).__name__}
        elif isinstance(error, Mapping):
            message = error.get("message") or ""
            if not message and error.get("reason") is not None:
                message = str(error["reason"])
            message = str(message or error)
            stack = error.get("stack")
            error_type = error_type or error.get("type")
            fields = {k: v for k, v in error.items() if k not in _ERROR_FIELDS}
            if error.get("reason") is not None:
                fields["reason"] = error["reason"]
        else:
            message = str(error)
            fields = {}

        if not isinstance(error_type, str) or not error_type:
            error_type = DEFAULT_ERROR_TYPE

        return ErrorRecord(
            timestamp=self._clock(),
            message=message,
            type=error_type,
            stack=stack,
            context=freeze_metadata(fields, extra),
        )

    def get_errors(
        self,
        error_type: str | None = None,
        since: float | None = None,
        limit: int | None = None,
    ) -> list[ErrorRecord]:
        """Return tracked errors matching every given filter.

        Args:
            error_type: Keep only records with this type tag
            since: Keep only records with ``timestamp >= since``
            limit: Keep only the most recent ``limit`` matches

        Returns:
            Matching records, oldest first
        """
        with self._lock:
            filtered = list(self._errors)

        if error_type:
            filtered = [e for e in filtered if e.type == error_type]

        if since is not None:
            filtered = [e for e in filtered if e.timestamp >= since]

        if limit:
            filtered = filtered[-limit:]

        return filtered

    def get_error_summary(self) -> dict[str, Any]:
        """Summarize the tracked errors.

        Returns:
            Total count, the most recent records and the most frequent messages
        """
        with self._lock:
            errors = list(self._errors)
            counts = list(self._counts.items())

        # sorted() is stable, so equal counts keep first-occurrence order.
        ranked = sorted(counts, key=lambda item: item[1], reverse=True)

        return {
            "total_errors": len(errors),
            "recent_errors": errors[-RECENT_ERRORS_IN_SUMMARY:],
            "top_errors": [
                {"message": message, "count": count}
                for message, count in ranked[:TOP_ERRORS_IN_SUMMARY]
            ],
        }

    def clear_errors(self) -> None:
        """Forget every tracked error and count."""
        with self._lock:
            self._errors.clear()
            self._counts.clear()
        self.logger.info("Error history cleared")
