"""Process-wide hooks reporting uncaught exceptions to a logger."""

import sys
import threading
from collections.abc import Callable
from types import TracebackType
from typing import Any

from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.severity import LogSeverity


def _tag(exc: BaseException, origin: str) -> None:
    # Exceptions without an instance dict stay untagged
    if hasattr(exc, "__dict__"):
        exc.uncaught_exception_type = origin  # type: ignore[attr-defined]


def attach_to_process(logger: StructuredLogger) -> Callable[[], None]:
    """Report uncaught exceptions of the process to a logger.

    Installs ``sys.excepthook`` and ``threading.excepthook`` (reported at
    ERROR with ``uncaught_exception_type`` set to ``"main"`` or
    ``"thread"``) and ``sys.unraisablehook`` (reported at WARNING). The
    hooks that were installed before still run afterwards.

    Args:
        logger: Logger to report to.

    Returns:
        Function restoring the previous hooks. Calling it more than once
        has no further effect.
    """
    previous_excepthook = sys.excepthook
    previous_threading_hook = threading.excepthook
    previous_unraisablehook = sys.unraisablehook

    def excepthook(
        exc_type: type[BaseException],
        exc_value: BaseException,
        exc_tb: TracebackType | None,
    ) -> None:
        if exc_value.__traceback__ is None and exc_tb is not None:
            exc_value = exc_value.with_traceback(exc_tb)
        _tag(exc_value, "main")
        logger.report_error(exc_value)
        previous_excepthook(exc_type, exc_value, exc_tb)

    def threading_excepthook(args: Any) -> None:
        if args.exc_value is not None:
            _tag(args.exc_value, "thread")
            logger.report_error(args.exc_value)
        previous_threading_hook(args)

    def unraisablehook(unraisable: Any) -> None:
        if unraisable.exc_value is not None:
            logger.report_error(unraisable.exc_value, LogSeverity.WARNING)
        previous_unraisablehook(unraisable)

    sys.excepthook = excepthook
    threading.excepthook = threading_excepthook
    sys.unraisablehook = unraisablehook
    attached = True

    def detach_from_process() -> None:
        nonlocal attached
        if not attached:
            return
        attached = False
        if sys.excepthook is excepthook:
            sys.excepthook = previous_excepthook
        if threading.excepthook is threading_excepthook:
            threading.excepthook = previous_threading_hook
        if sys.unraisablehook is unraisablehook:
            sys.unraisablehook = previous_unraisablehook

    return detach_from_process
