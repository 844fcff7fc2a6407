"""Structured log records and their renderings."""

import json
from dataclasses import dataclass, field
from typing import Any

from ..core.types import EMPTY_METADATA, Metadata
from .levels import LogLevel


@dataclass(frozen=True)
class LogEntry:
    """One structured record emitted by the logger."""

    timestamp: str
    level: LogLevel
    module: str
    message: str
    metadata: Metadata = field(default_factory=lambda: EMPTY_METADATA)

    def to_record(self) -> dict[str, Any]:
        """Flatten the entry into a single ordered record.

        The four standard fields come first, followed by the metadata keys.
        """
        record: dict[str, Any] = {
            "timestamp": self.timestamp,
            "level": self.level.name,
            "module": self.module,
            "message": self.message,
        }
        record.update(self.metadata)
        return record

    def to_json(self) -> str:
        """Render the entry as one newline-free JSON document."""
        return json.dumps(self.to_record(), default=str, ensure_ascii=False)

    def console_prefix(self) -> str:
        """Return the ``[timestamp] [LEVEL] [module]`` header."""
        return f"[{self.timestamp}] [{self.level.name}] [{self.module}]"

    def metadata_json(self) -> str | None:
        """Serialized extra metadata, or ``None`` when there is none."""
        if not self.metadata:
            return None
        return json.dumps(dict(self.metadata), default=str, ensure_ascii=False)
