"""Bounded metric series and summary statistics."""

import math
from collections import deque
from collections.abc import Iterable, Iterator
from dataclasses import asdict, dataclass, field
from typing import Any

from ..core.types import EMPTY_METADATA, Metadata


@dataclass(frozen=True)
class MetricSample:
    """One timestamped measurement."""

    timestamp: float
    value: float
    metadata: Metadata = field(default_factory=lambda: EMPTY_METADATA)


@dataclass(frozen=True)
class MetricStats:
    """Summary statistics over a series."""

    min: float
    max: float
    avg: float
    median: float
    p95: float
    p99: float
    count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class MetricSeries:
    """Fixed-capacity series that evicts its oldest sample on overflow.

    Args:
        name: Series name
        max_samples: Maximum number of samples retained
    """

    def __init__(self, name: str, max_samples: int) -> None:
        if max_samples < 1:
            raise ValueError("max_samples must be at least 1")
        self.name = name
        self._samples: deque[MetricSample] = deque(maxlen=max_samples)

    @property
    def max_samples(self) -> int:
        return self._samples.maxlen or 0

    def append(self, sample: MetricSample) -> None:
        self._samples.append(sample)

    def values(self) -> list[float]:
        return [sample.value for sample in self._samples]

    def latest(self) -> MetricSample | None:
        return self._samples[-1] if self._samples else None

    def clear(self) -> None:
        self._samples.clear()

    def __iter__(self) -> Iterator[MetricSample]:
        return iter(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __repr__(self) -> str:
        return f"MetricSeries(name={self.name!r}, samples={len(self)}/{self.max_samples})"


def _percentile(sorted_values: list[float], fraction: float) -> float:
    index = min(math.floor(len(sorted_values) * fraction), len(sorted_values) - 1)
    return sorted_values[index]


def calculate_stats(samples: Iterable[MetricSample | float] | None) -> MetricStats | None:
    """Compute min/max/avg/median/p95/p99 over samples or raw values.

    Percentiles index the ascending-sorted values at ``floor(n * p)``.

    Returns:
        Statistics, or None for an empty series
    """
    if samples is None:
        return None

    values = [s.value if isinstance(s, MetricSample) else float(s) for s in samples]
    if not values:
        return None

    ordered = sorted(values)
    return MetricStats(
        min=ordered[0],
        max=ordered[-1],
        avg=sum(values) / len(values),
        median=ordered[len(ordered) // 2],
        p95=_percentile(ordered, 0.95),
        p99=_percentile(ordered, 0.99),
        count=len(values),
    )
