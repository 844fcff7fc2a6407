"""Core types and exceptions shared by every observability component."""

from .exceptions import HealthCheckError, ObservabilityError, ObservabilityStateError
from .types import Metadata, freeze_metadata

__all__ = [
    "HealthCheckError",
    "Metadata",
    "ObservabilityError",
    "ObservabilityStateError",
    "freeze_metadata",
]
