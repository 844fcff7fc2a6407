"""Global error surfaces the error tracker can hook into.

Each surface wraps one place where the interpreter reports failures that no
caller handled. Surfaces are installed independently and only when
available, so the tracker works in headless hosts, worker threads and
programs without an event loop alike. Every surface chains to the handler
it replaced.
"""

import asyncio
import logging
import sys
import threading
import traceback
from collections.abc import Callable
from types import TracebackType
from typing import Any, Protocol

from ..constants import FALLBACK_LOGGER_NAME

_fallback = logging.getLogger(FALLBACK_LOGGER_NAME)

GlobalErrorHandler = Callable[[dict[str, Any]], None]


class ErrorSurface(Protocol):
    """A capability-gated source of uncaught failures."""

    name: str

    def is_available(self) -> bool: ...

    def install(self, handler: GlobalErrorHandler) -> None: ...

    def uninstall(self) -> None: ...


def describe_exception(
    error_type: str,
    exc: BaseException | None,
    exc_type: type[BaseException] | None = None,
    tb: TracebackType | None = None,
) -> dict[str, Any]:
    """Build the error info dict handed to the tracker."""
    exc_type = exc_type or (type(exc) if exc is not None else None)
    tb = tb or (exc.__traceback__ if exc is not None else None)

    info: dict[str, Any] = {
        "type": error_type,
        "message": (str(exc) if exc is not None else "") or (exc_type.__name__ if exc_type else ""),
        "exception": exc_type.__name__ if exc_type else None,
    }
    if exc_type is not None:
        info["stack"] = "".join(traceback.format_exception(exc_type, exc, tb))
    code = getattr(exc, "errno", None)
    if code is not None:
        info["code"] = code
    return info


def _notify(handler: GlobalErrorHandler | None, info: dict[str, Any]) -> None:
    if handler is None:
        return
    try:
        handler(info)
    except Exception:
        _fallback.exception("Error tracker failed to handle a global error")


class SysExceptHookSurface:
    """Uncaught exceptions on the main thread (``sys.excepthook``)."""

    name = "sys.excepthook"
    error_type = "uncaught-exception"

    def __init__(self) -> None:
        self._handler: GlobalErrorHandler | None = None
        self._previous: Callable[..., Any] | None = None
        self._hook: Callable[..., Any] | None = None

    def is_available(self) -> bool:
        return hasattr(sys, "excepthook")

    def install(self, handler: GlobalErrorHandler) -> None:
        self._handler = handler
        self._previous = sys.excepthook
        self._hook = self._on_exception
        sys.excepthook = self._hook

    def _on_exception(
        self,
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_tb: TracebackType | None,
    ) -> None:
        _notify(self._handler, describe_exception(self.error_type, exc_value, exc_type, exc_tb))
        previous = self._previous or sys.__excepthook__
        previous(exc_type, exc_value, exc_tb)

    def uninstall(self) -> None:
        if self._hook is not None and sys.excepthook is self._hook:
            sys.excepthook = self._previous or sys.__excepthook__
        self._hook = None
        self._handler = None


class ThreadExceptHookSurface:
    """Uncaught exceptions in worker threads (``threading.excepthook``)."""

    name = "threading.excepthook"
    error_type = "uncaught-thread-exception"

    def __init__(self) -> None:
        self._handler: GlobalErrorHandler | None = None
        self._previous: Callable[..., Any] | None = None
        self._hook: Callable[..., Any] | None = None

    def is_available(self) -> bool:
        return hasattr(threading, "excepthook")

    def install(self, handler: GlobalErrorHandler) -> None:
        self._handler = handler
        self._previous = threading.excepthook
        self._hook = self._on_exception
        threading.excepthook = self._hook

    def _on_exception(self, args: Any) -> None:
        info = describe_exception(self.error_type, args.exc_value, args.exc_type, args.exc_traceback)
        if args.thread is not None:
            info["thread"] = args.thread.name
        _notify(self._handler, info)
        previous = self._previous or threading.__excepthook__
        previous(args)

    def uninstall(self) -> None:
        if self._hook is not None and threading.excepthook is self._hook:
            threading.excepthook = self._previous or threading.__excepthook__
        self._hook = None
        self._handler = None


class AsyncioExceptionSurface:
    """Exceptions nobody retrieved from tasks and futures of an event loop.

    Only available while a loop is running, unless one is passed explicitly.
    """

    name = "asyncio"
    error_type = "unhandled-rejection"

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop
        self._installed_loop: asyncio.AbstractEventLoop | None = None
        self._handler: GlobalErrorHandler | None = None
        self._previous: Callable[..., Any] | None = None
        self._hook: Callable[..., Any] | None = None

    def _resolve_loop(self) -> asyncio.AbstractEventLoop | None:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def is_available(self) -> bool:
        return self._resolve_loop() is not None

    def install(self, handler: GlobalErrorHandler) -> None:
        loop = self._resolve_loop()
        if loop is None:
            return
        self._handler = handler
        self._installed_loop = loop
        self._previous = loop.get_exception_handler()
        self._hook = self._on_exception
        loop.set_exception_handler(self._hook)

    def _on_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        info = describe_exception(self.error_type, exc)
        info["message"] = info["message"] or context.get("message", "")
        if exc is not None:
            info["reason"] = repr(exc)
        if context.get("message"):
            info["detail"] = context["message"]
        _notify(self._handler, info)

        if self._previous is not None:
            self._previous(loop, context)
        else:
            loop.default_exception_handler(context)

    def uninstall(self) -> None:
        loop = self._installed_loop
        if loop is not None and self._hook is not None and loop.get_exception_handler() is self._hook:
            loop.set_exception_handler(self._previous)
        self._installed_loop = None
        self._hook = None
        self._handler = None


def default_surfaces() -> list[ErrorSurface]:
    """The interpreter-level surfaces every host has a chance of providing."""
    return [SysExceptHookSurface(), ThreadExceptHookSurface(), AsyncioExceptionSurface()]
