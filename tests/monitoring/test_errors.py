"""Tests for error tracking."""

import threading
from unittest.mock import MagicMock

import pytest

from vigil.monitoring import ErrorRecord, ErrorTracker, ErrorTrackerConfig


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now


class FakeSurface:
    """Error surface under test control."""

    def __init__(self, name="fake", available=True):
        self.name = name
        self.available = available
        self.handler = None
        self.uninstalled = False

    def is_available(self):
        return self.available

    def install(self, handler):
        self.handler = handler

    def uninstall(self):
        self.uninstalled = True


class TestErrorTrackerConfig:
    """Test error tracker configuration."""

    def test_default_config(self):
        config = ErrorTrackerConfig()

        assert config.enabled is True
        assert config.max_errors == 100
        assert config.surfaces is None

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            ErrorTrackerConfig(max_errors=0)


class TestErrorTracker:
    """Test error tracker functionality."""

    @pytest.fixture
    def clock(self):
        return FakeClock()

    @pytest.fixture
    def tracker(self, quiet_logger, clock):
        return ErrorTracker(ErrorTrackerConfig(surfaces=[]), logger=quiet_logger, clock=clock)

    def test_track_exception(self, tracker):
        try:
            raise ValueError("bad input")
        except ValueError as e:
            record = tracker.track_error(e, {"command": "ls"})

        assert isinstance(record, ErrorRecord)
        assert record.message == "bad input"
        assert record.type == "error"
        assert "ValueError: bad input" in record.stack
        assert record.context["command"] == "ls"
        assert record.context["exception"] == "ValueError"
        assert tracker.errors == [record]

    def test_track_string(self, tracker):
        record = tracker.track_error("plain failure")

        assert record.message == "plain failure"
        assert record.stack is None

    def test_track_mapping(self, tracker):
        record = tracker.track_error({"message": "socket closed", "stack": "trace", "code": 104})

        assert record.message == "socket closed"
        assert record.stack == "trace"
        assert record.context["code"] == 104

    def test_context_type_overrides_tag(self, tracker):
        record = tracker.track_error(RuntimeError("x"), {"type": "plugin"})

        assert record.type == "plugin"
        assert "type" not in record.context

    def test_counts_by_message(self, tracker):
        tracker.track_error("A")
        tracker.track_error("B")
        tracker.track_error("A")

        assert dict(tracker.error_counts) == {"A": 2, "B": 1}

    def test_counts_survive_concurrent_threads(self, quiet_logger):
        """Worker threads reporting the same failure never lose a count."""
        tracker = ErrorTracker(ErrorTrackerConfig(surfaces=[], max_errors=1000), logger=quiet_logger)
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            for _ in range(50):
                tracker.track_error("worker crashed")

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert tracker.error_counts["worker crashed"] == 400
        assert len(tracker.errors) == 400
        assert tracker.get_error_summary()["top_errors"] == [{"message": "worker crashed", "count": 400}]

    def test_error_counts_are_read_only(self, tracker):
        tracker.track_error("A")

        with pytest.raises(TypeError):
            tracker.error_counts["A"] = 10

    def test_history_is_bounded(self, quiet_logger):
        """The oldest record is evicted once max_errors is exceeded."""
        tracker = ErrorTracker(ErrorTrackerConfig(max_errors=3, surfaces=[]), logger=quiet_logger)

        for i in range(5):
            tracker.track_error(f"error {i}")

        assert [e.message for e in tracker.errors] == ["error 2", "error 3", "error 4"]
        # Counts survive eviction.
        assert tracker.error_counts["error 0"] == 1

    def test_disabled_tracker_ignores_errors(self, quiet_logger):
        tracker = ErrorTracker(ErrorTrackerConfig(enabled=False), logger=quiet_logger)

        assert tracker.track_error("ignored") is None
        assert tracker.errors == []
        assert tracker.error_counts == {}

    def test_logs_tracked_error(self, stdout_console, stderr_console):
        from vigil.logger import LoggerConfig, build_logger

        root = build_logger(LoggerConfig(stdout=stdout_console, stderr=stderr_console))
        tracker = ErrorTracker(ErrorTrackerConfig(surfaces=[]), logger=root.child("error-tracker"))

        tracker.track_error("disk full")
        tracker.track_error("disk full")

        err = stderr_console.file.getvalue()
        assert "[ERROR] [error-tracker] Error tracked" in err
        assert '"count": 2' in err

    def test_get_errors_filters(self, tracker, clock):
        tracker.track_error("a", {"type": "network"})
        clock.now = 2000.0
        tracker.track_error("b", {"type": "network"})
        tracker.track_error("c", {"type": "io"})
        clock.now = 3000.0
        tracker.track_error("d", {"type": "network"})

        assert [e.message for e in tracker.get_errors(error_type="network")] == ["a", "b", "d"]
        assert [e.message for e in tracker.get_errors(since=2000.0)] == ["b", "c", "d"]
        assert [e.message for e in tracker.get_errors(error_type="network", since=2000.0)] == ["b", "d"]
        assert [e.message for e in tracker.get_errors(limit=2)] == ["c", "d"]
        assert [e.message for e in tracker.get_errors(error_type="network", limit=1)] == ["d"]

    def test_summary(self, tracker):
        """Top errors sort by count, ties keep first occurrence order."""
        for message in ["A", "B", "A", "C", "B", "A"]:
            tracker.track_error(message)

        summary = tracker.get_error_summary()

        assert summary["total_errors"] == 6
        assert [e.message for e in summary["recent_errors"]] == ["A", "B", "A", "C", "B", "A"]
        assert summary["top_errors"] == [
            {"message": "A", "count": 3},
            {"message": "B", "count": 2},
            {"message": "C", "count": 1},
        ]

    def test_summary_limits(self, tracker):
        for i in range(12):
            tracker.track_error(f"error {i}")
        for _ in range(3):
            tracker.track_error("error 11")

        summary = tracker.get_error_summary()

        assert len(summary["recent_errors"]) == 10
        assert len(summary["top_errors"]) == 5
        assert summary["top_errors"][0] == {"message": "error 11", "count": 4}
        assert [e["message"] for e in summary["top_errors"][1:]] == [
            "error 0",
            "error 1",
            "error 2",
            "error 3",
        ]

    def test_clear_errors(self, tracker):
        tracker.track_error("A")

        tracker.clear_errors()

        assert tracker.errors == []
        assert tracker.error_counts == {}
        assert tracker.get_error_summary()["total_errors"] == 0


class TestGlobalErrorCapture:
    """Test installing surfaces and handling global errors."""

    def test_start_installs_available_surfaces(self, quiet_logger):
        available = FakeSurface("available")
        missing = FakeSurface("missing", available=False)
        tracker = ErrorTracker(ErrorTrackerConfig(surfaces=[available, missing]), logger=quiet_logger)

        tracker.start()

        assert available.handler is not None
        assert missing.handler is None
        assert tracker.started

    def test_failing_surface_does_not_block_others(self, quiet_logger):
        broken = MagicMock()
        broken.name = "broken"
        broken.is_available.return_value = True
        broken.install.side_effect = RuntimeError("cannot hook")
        working = FakeSurface()
        tracker = ErrorTracker(ErrorTrackerConfig(surfaces=[broken, working]), logger=quiet_logger)

        tracker.start()

        assert working.handler is not None

    def test_disabled_tracker_installs_nothing(self, quiet_logger):
        surface = FakeSurface()
        tracker = ErrorTracker(ErrorTrackerConfig(enabled=False, surfaces=[surface]), logger=quiet_logger)

        tracker.start()

        assert surface.handler is None
        assert not tracker.started

    def test_stop_uninstalls_surfaces(self, quiet_logger):
        surface = FakeSurface()
        tracker = ErrorTracker(ErrorTrackerConfig(surfaces=[surface]), logger=quiet_logger)
        tracker.start()

        tracker.stop()

        assert surface.uninstalled
        assert not tracker.started

    def test_surface_reports_are_tracked(self, quiet_logger):
        surface = FakeSurface()
        tracker = ErrorTracker(
            ErrorTrackerConfig(surfaces=[surface]), logger=quiet_logger, clock=FakeClock(42.0)
        )
        tracker.start()

        surface.handler({"type": "uncaught-exception", "message": "boom", "stack": "Traceback"})

        [record] = tracker.errors
        assert record.type == "uncaught-exception"
        assert record.message == "boom"
        assert record.stack == "Traceback"
        assert record.timestamp == 42.0

    def test_rejection_reason_used_as_message(self, quiet_logger):
        tracker = ErrorTracker(ErrorTrackerConfig(surfaces=[]), logger=quiet_logger)

        tracker.handle_global_error({"type": "unhandled-rejection", "reason": "timeout"})

        [record] = tracker.errors
        assert record.message == "timeout"
        assert record.type == "unhandled-rejection"
        assert record.context["reason"] == "timeout"
