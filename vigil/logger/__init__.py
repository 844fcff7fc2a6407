"""Structured logging with size-based rotation and per-module scoping.

This package provides:
- Five ordered severities from ERROR to TRACE
- Console output rendered with rich and NDJSON file output
- Size-triggered rotation with a bounded number of generations
- Module-scoped child loggers sharing one set of destinations
"""

from .entry import LogEntry
from .levels import LogLevel
from .logger import Logger, LoggerConfig, build_logger
from .rotation import SizeRotatingFileHandler
from .sinks import ConsoleSink, Destination, FileSink, LogRouter

__all__ = [
    "ConsoleSink",
    "Destination",
    "FileSink",
    "LogEntry",
    "LogLevel",
    "LogRouter",
    "Logger",
    "LoggerConfig",
    "SizeRotatingFileHandler",
    "build_logger",
]
