"""Log destinations and the router that fans entries out to them."""

import logging
from enum import Enum
from pathlib import Path
from typing import Protocol

from rich.console import Console
from rich.text import Text

from ..constants import FALLBACK_LOGGER_NAME
from .entry import LogEntry
from .levels import LogLevel
from .rotation import SizeRotatingFileHandler

_fallback = logging.getLogger(FALLBACK_LOGGER_NAME)

LEVEL_STYLES: dict[LogLevel, str] = {
    LogLevel.ERROR: "red",
    LogLevel.WARN: "yellow",
    LogLevel.INFO: "cyan",
    LogLevel.DEBUG: "bright_black",
    LogLevel.TRACE: "white",
}


class Destination(str, Enum):
    """Where log entries are written."""

    CONSOLE = "console"
    FILE = "file"


class LogSink(Protocol):
    """A single output for rendered log entries."""

    name: str

    def write(self, entry: LogEntry) -> None: ...

    def close(self) -> None: ...


class ConsoleSink:
    """Human-readable console output rendered with rich.

    ERROR and WARN entries go to stderr, everything else to stdout.
    """

    name = Destination.CONSOLE.value

    def __init__(self, stdout: Console | None = None, stderr: Console | None = None):
        self.stdout = stdout or Console(highlight=False, soft_wrap=True, emoji=False)
        self.stderr = stderr or Console(stderr=True, highlight=False, soft_wrap=True, emoji=False)

    def render(self, entry: LogEntry) -> Text:
        """Build the ``[timestamp] [LEVEL] [module] message {meta}`` line."""
        line = Text.assemble(
            (entry.console_prefix(), LEVEL_STYLES.get(entry.level, "")),
            " ",
            entry.message,
        )
        meta = entry.metadata_json()
        if meta is not None:
            line.append(" ")
            line.append(meta)
        return line

    def write(self, entry: LogEntry) -> None:
        console = self.stderr if entry.level <= LogLevel.WARN else self.stdout
        console.print(self.render(entry))

    def close(self) -> None:
        pass


class FileSink:
    """Append-only NDJSON file with size-based rotation."""

    name = Destination.FILE.value

    def __init__(self, log_dir: Path, file_name: str, max_bytes: int, backup_count: int):
        self.log_dir = Path(log_dir)
        self.path = self.log_dir / file_name
        self.ensure_directory()
        self.handler = SizeRotatingFileHandler(self.path, max_bytes, backup_count)

    def ensure_directory(self) -> bool:
        """Create the log directory (recursive, idempotent).

        Returns:
            True if the directory exists afterwards
        """
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            return True
        except OSError as e:
            _fallback.warning("Failed to create log directory %s: %s", self.log_dir, e)
            return False

    def write(self, entry: LogEntry) -> None:
        record = logging.makeLogRecord(
            {
                "name": entry.module,
                "msg": entry.to_json(),
                "levelname": entry.level.name,
            }
        )
        self.handler.handle(record)

    def close(self) -> None:
        self.handler.close()


class LogRouter:
    """Terminal logger wrapped by structlog; dispatches entries to every sink.

    A failing sink is reported on the fallback channel and never affects
    the other sinks or the caller.
    """

    def __init__(self, sinks: list[LogSink] | None = None, threshold: LogLevel = LogLevel.INFO):
        self.sinks: list[LogSink] = list(sinks or [])
        self.threshold = LogLevel.parse(threshold)
        self.closed = False

    def dispatch(self, entry: LogEntry) -> None:
        """Write one entry to all sinks."""
        if self.closed:
            return
        for sink in self.sinks:
            try:
                sink.write(entry)
            except Exception as e:
                _fallback.warning("Log destination %s failed: %s", sink.name, e)

    error = warn = warning = info = debug = trace = dispatch

    def get_sink(self, name: str) -> LogSink | None:
        """Find a sink by destination name."""
        for sink in self.sinks:
            if sink.name == name:
                return sink
        return None

    def close(self) -> None:
        """Close every sink; further entries are discarded."""
        if self.closed:
            return
        self.closed = True
        for sink in self.sinks:
            try:
                sink.close()
            except Exception as e:
                _fallback.warning("Failed to close log destination %s: %s", sink.name, e)
