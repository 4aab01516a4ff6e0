"""Reporting of exceptions that escape a request handler."""

from typing import Any

from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.models import ResponseInfo
from cloudlogpy.core.severity import LogSeverity


def status_of(exc: BaseException) -> int | None:
    """Return the HTTP status an exception asks for, if it carries one."""
    for attribute in ("status_code", "status"):
        value: Any = getattr(exc, attribute, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def error_severity(status: int | None) -> LogSeverity | None:
    """Return WARNING for client errors, None to let the logger decide.

    A status below 500 describes a bad request rather than a server fault.
    """
    if status is not None and status < 500:
        return LogSeverity.WARNING
    return None


def report_request_exception(
    log: StructuredLogger, exc: BaseException, status: int | None = None
) -> None:
    """Report an exception raised while handling a request.

    Args:
        log: Request-scoped logger.
        exc: The exception.
        status: Status the framework answers with. Defaults to the
            exception's ``status_code``/``status`` attribute.

    When the handler never started a response, the response is recorded with
    that status (or 500) so the report carries the final status.
    """
    if status is None:
        status = status_of(exc)
    context = log.request_context
    if context is not None and context.request.response is None:
        request: Any = context.request
        request.response = ResponseInfo(status_code=status or 500)
    log.report_error(exc, error_severity(status))
