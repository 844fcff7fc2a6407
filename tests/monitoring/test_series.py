"""Tests for bounded metric series and statistics."""

import math

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from vigil.monitoring import MetricSample, MetricSeries, calculate_stats

finite_floats = st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False)


class TestMetricSeries:
    """Test fixed-capacity series."""

    def test_append_and_latest(self):
        series = MetricSeries("fps", max_samples=3)
        series.append(MetricSample(timestamp=1.0, value=60))

        assert len(series) == 1
        assert series.latest().value == 60

    def test_empty_series(self):
        series = MetricSeries("fps", max_samples=3)

        assert series.latest() is None
        assert series.values() == []

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            MetricSeries("fps", max_samples=0)

    def test_clear(self):
        series = MetricSeries("fps", max_samples=3)
        series.append(MetricSample(timestamp=1.0, value=60))

        series.clear()

        assert len(series) == 0


class TestMetricSeriesProperties:
    """Property-based tests for bounded series."""

    @given(
        capacity=st.integers(min_value=1, max_value=50),
        values=st.lists(finite_floats, max_size=200),
    )
    @settings(max_examples=100, deadline=1000)
    def test_keeps_most_recent_in_order(self, capacity, values):
        """Length never exceeds the cap and eviction drops strictly the oldest."""
        series = MetricSeries("custom", max_samples=capacity)

        for i, value in enumerate(values):
            series.append(MetricSample(timestamp=float(i), value=value))
            assert len(series) <= capacity

        assert series.values() == values[-capacity:]
        timestamps = [s.timestamp for s in series]
        assert timestamps == sorted(timestamps)


class TestCalculateStats:
    """Test summary statistics."""

    def test_empty_input(self):
        assert calculate_stats([]) is None
        assert calculate_stats(None) is None

    def test_known_values(self):
        stats = calculate_stats([10, 20, 30, 40, 50])

        assert stats.min == 10
        assert stats.max == 50
        assert stats.avg == 30
        assert stats.median == 30
        assert stats.p95 == 50
        assert stats.p99 == 50
        assert stats.count == 5

    def test_percentiles_index_by_floor(self):
        stats = calculate_stats(range(1, 101))

        # floor(100 * 0.95) = 95 -> 96th smallest value
        assert stats.p95 == 96
        assert stats.p99 == 100
        assert stats.median == 51

    def test_accepts_samples(self):
        samples = [MetricSample(timestamp=0.0, value=v) for v in (3, 1, 2)]

        stats = calculate_stats(samples)

        assert stats.min == 1
        assert stats.max == 3
        assert stats.to_dict()["count"] == 3

    @given(values=st.lists(finite_floats, min_size=1, max_size=200))
    @settings(max_examples=200, deadline=1000)
    def test_stats_invariants(self, values):
        """min <= median <= p95 <= p99 <= max and min <= avg <= max."""
        stats = calculate_stats(values)

        assert stats.count == len(values)
        assert stats.min <= stats.median <= stats.p95 <= stats.p99 <= stats.max
        assert stats.min - 1e-6 <= stats.avg <= stats.max + 1e-6
        assert stats.min == min(values)
        assert stats.max == max(values)
        assert not math.isnan(stats.avg)
