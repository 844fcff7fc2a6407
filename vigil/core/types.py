"""Shared type aliases for structured records."""

import time
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

# Ordered, string-keyed association attached to log entries, samples and errors.
Metadata = Mapping[str, Any]

Clock = Callable[[], float]

EMPTY_METADATA: Metadata = MappingProxyType({})


def freeze_metadata(*sources: Mapping[str, Any] | None) -> Metadata:
    """Merge mappings left to right into a read-only ordered mapping."""
    merged: dict[str, Any] = {}
    for source in sources:
        if source:
            merged.update(source)
    if not merged:
        return EMPTY_METADATA
    return MappingProxyType(merged)


def wall_clock() -> float:
    """Current wall-clock time in epoch seconds."""
    return time.time()
