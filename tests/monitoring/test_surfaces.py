"""Tests for global error surfaces."""

import asyncio
import logging
import sys
import threading
from unittest.mock import MagicMock

import pytest

from vigil.monitoring import (
    AsyncioExceptionSurface,
    ErrorTracker,
    ErrorTrackerConfig,
    SysExceptHookSurface,
    ThreadExceptHookSurface,
)
from vigil.monitoring.surfaces import default_surfaces, describe_exception


def raise_and_capture(exc):
    try:
        raise exc
    except type(exc) as e:
        return e


class TestDescribeException:
    """Test error info construction."""

    def test_includes_stack_and_class(self):
        exc = raise_and_capture(KeyError("missing"))

        info = describe_exception("uncaught-exception", exc)

        assert info["type"] == "uncaught-exception"
        assert info["exception"] == "KeyError"
        assert "KeyError" in info["stack"]

    def test_errno_becomes_code(self):
        info = describe_exception("uncaught-exception", OSError(2, "No such file"))

        assert info["code"] == 2

    def test_empty_message_uses_class_name(self):
        info = describe_exception("uncaught-exception", RuntimeError())

        assert info["message"] == "RuntimeError"


class TestSysExceptHookSurface:
    """Test main-thread uncaught exception capture."""

    def test_reports_and_chains(self, monkeypatch):
        previous = MagicMock()
        monkeypatch.setattr(sys, "excepthook", previous)
        reports = []
        surface = SysExceptHookSurface()

        surface.install(reports.append)
        exc = raise_and_capture(ValueError("fatal"))
        sys.excepthook(type(exc), exc, exc.__traceback__)

        assert reports[0]["type"] == "uncaught-exception"
        assert reports[0]["message"] == "fatal"
        previous.assert_called_once_with(type(exc), exc, exc.__traceback__)

    def test_uninstall_restores_previous_hook(self, monkeypatch):
        previous = MagicMock()
        monkeypatch.setattr(sys, "excepthook", previous)
        surface = SysExceptHookSurface()

        surface.install(lambda info: None)
        assert sys.excepthook is not previous
        surface.uninstall()

        assert sys.excepthook is previous

    def test_uninstall_keeps_later_hooks(self, monkeypatch):
        """A hook installed after ours is left in place."""
        monkeypatch.setattr(sys, "excepthook", MagicMock())
        surface = SysExceptHookSurface()
        surface.install(lambda info: None)
        later = MagicMock()
        sys.excepthook = later

        surface.uninstall()

        assert sys.excepthook is later

    def test_failing_handler_still_chains(self, monkeypatch, caplog):
        previous = MagicMock()
        monkeypatch.setattr(sys, "excepthook", previous)
        surface = SysExceptHookSurface()

        def broken(info):
            raise RuntimeError("tracker broke")

        surface.install(broken)
        exc = raise_and_capture(ValueError("fatal"))
        with caplog.at_level(logging.ERROR, logger="vigil.fallback"):
            sys.excepthook(type(exc), exc, exc.__traceback__)

        assert "failed to handle a global error" in caplog.text
        previous.assert_called_once()


class TestThreadExceptHookSurface:
    """Test worker-thread uncaught exception capture."""

    def test_reports_thread_failures(self, monkeypatch):
        previous = MagicMock()
        monkeypatch.setattr(threading, "excepthook", previous)
        reports = []
        surface = ThreadExceptHookSurface()
        surface.install(reports.append)

        def worker():
            raise RuntimeError("worker died")

        thread = threading.Thread(target=worker, name="indexer")
        thread.start()
        thread.join()
        surface.uninstall()

        assert reports[0]["type"] == "uncaught-thread-exception"
        assert reports[0]["message"] == "worker died"
        assert reports[0]["thread"] == "indexer"
        previous.assert_called_once()
        assert threading.excepthook is previous


class TestAsyncioExceptionSurface:
    """Test event loop exception capture."""

    def test_unavailable_without_running_loop(self):
        assert not AsyncioExceptionSurface().is_available()

    @pytest.mark.asyncio
    async def test_reports_and_chains(self):
        loop = asyncio.get_running_loop()
        previous = MagicMock()
        loop.set_exception_handler(previous)
        reports = []
        surface = AsyncioExceptionSurface()

        assert surface.is_available()
        surface.install(reports.append)
        context = {"message": "Task exception was never retrieved", "exception": ValueError("lost")}
        loop.call_exception_handler(context)
        surface.uninstall()

        assert reports[0]["type"] == "unhandled-rejection"
        assert reports[0]["message"] == "lost"
        assert reports[0]["reason"] == "ValueError('lost')"
        assert reports[0]["detail"] == "Task exception was never retrieved"
        previous.assert_called_once_with(loop, context)
        assert loop.get_exception_handler() is previous
        loop.set_exception_handler(None)

    @pytest.mark.asyncio
    async def test_context_without_exception(self):
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(None)
        reports = []
        surface = AsyncioExceptionSurface()
        surface.install(reports.append)
        loop.default_exception_handler = MagicMock()

        loop.call_exception_handler({"message": "Unclosed transport"})
        surface.uninstall()

        assert reports[0]["message"] == "Unclosed transport"
        loop.default_exception_handler.assert_called_once()
        assert loop.get_exception_handler() is None

    @pytest.mark.asyncio
    async def test_tracker_captures_loop_errors(self, quiet_logger):
        """With a running loop the default surfaces include the asyncio one."""
        loop = asyncio.get_running_loop()
        loop.set_exception_handler(lambda loop, context: None)
        surfaces = [s for s in default_surfaces() if isinstance(s, AsyncioExceptionSurface)]
        tracker = ErrorTracker(ErrorTrackerConfig(surfaces=surfaces), logger=quiet_logger)

        tracker.start()
        loop.call_exception_handler({"message": "lost", "exception": KeyError("k")})
        tracker.stop()
        loop.set_exception_handler(None)

        [record] = tracker.errors
        assert record.type == "unhandled-rejection"
