"""Build Error Reporting events from arbitrary raised (or passed) values.

An event written as the payload of a log entry is picked up by Error
Reporting when its ``message`` holds a stack trace. Values that were never
raised get a freshly captured stack pointing at the caller of
``report_error``, with the frames of the reporting machinery itself removed.

See https://cloud.google.com/error-reporting/docs/formatting-error-messages
"""

import os
import pprint
import re
import traceback
from collections.abc import Mapping
from typing import Any

from cloudlogpy.core.hr_time import hr_to_timestamp, now, timestamp_to_iso_string
from cloudlogpy.core.models import (
    ErrorContext,
    ErrorReport,
    ErrorReportingHttpRequest,
    ServiceContext,
)
from cloudlogpy.core.serialize import format_exception_stack

_CORE_DIR = os.path.dirname(os.path.abspath(__file__))
_REPORTING_FUNCTIONS = ("report_error", "build_error_report", "error_message", "_capture_stack")

# A "  File ..." frame of a reporting entry point in this package, followed
# by its indented source and caret lines
_REPORTING_FRAME = re.compile(
    rf'^  File "{re.escape(_CORE_DIR)}[\\/][^"]+", line \d+, '
    rf"in (?:{'|'.join(_REPORTING_FUNCTIONS)})\n(?:    .*\n)*",
    re.MULTILINE,
)

TRACEBACK_HEADER = "Traceback (most recent call last):\n"


def error_field(value: Any, name: str) -> Any:
    """Read a field of an error given as a mapping or as an object."""
    if isinstance(value, Mapping):
        return value.get(name)
    return getattr(value, name, None)


def _capture_stack() -> str:
    return "".join(traceback.format_stack())


def strip_reporting_frames(stack: str) -> str:
    """Remove the frames of the reporting entry points from a stack."""
    return _REPORTING_FRAME.sub("", stack)


def describe_error(err: Any) -> str:
    """Return a one-line description of a value that was not raised.

    Exceptions read as ``Type: message``. Other values use their own
    ``__str__`` when they define one, then a ``message`` field, then a
    pretty-printed representation.
    """
    if isinstance(err, BaseException):
        return "".join(traceback.format_exception_only(type(err), err)).rstrip("\n")
    if isinstance(err, str):
        return err
    if type(err).__str__ is not object.__str__ and not isinstance(
        err, (Mapping, list, tuple, set, frozenset)
    ):
        return str(err)
    message = error_field(err, "message")
    if isinstance(message, str) and message:
        return message
    return pprint.pformat(err)


def error_message(err: Any) -> str:
    """Return the ``message`` of an error event: a stack trace plus text."""
    if isinstance(err, BaseException) and err.__traceback__ is not None:
        return format_exception_stack(err) or describe_error(err)
    stack = error_field(err, "stack")
    if isinstance(stack, str) and stack:
        return stack
    frames = strip_reporting_frames(_capture_stack())
    return TRACEBACK_HEADER + frames + describe_error(err)


def build_error_report(
    err: Any,
    service_context: ServiceContext,
    http_request: ErrorReportingHttpRequest | None = None,
    user: Any = None,
) -> ErrorReport:
    """Build an Error Reporting event for any value.

    Args:
        err: Exception or any other value; never rejected.
        service_context: Service the error happened in.
        http_request: Request being handled, for request-scoped loggers.
        user: Fallback user when ``err`` has no ``user`` of its own.

    Returns:
        Event with ``eventTime``, ``serviceContext``, ``message`` and, when
        there is anything to put in it, ``context``.
    """
    report: ErrorReport = {
        "eventTime": timestamp_to_iso_string(hr_to_timestamp(now())),
        "serviceContext": service_context.to_dict(),
        "message": error_message(err),
    }
    context: ErrorContext = {}
    if http_request:
        context["httpRequest"] = http_request
    user = error_field(err, "user") or user
    if user:
        context["user"] = user
    if context:
        report["context"] = context
    return report
