"""Django adapter for request-scoped loggers.

Usage in a settings module's import path, e.g. ``myproject/logging.py``:

    ```python
    from cloudlogpy import Logging
    from cloudlogpy.adapters.frameworks.django import create_django_middleware

    logging = Logging.from_env(log_name="web")
    LoggingMiddleware = create_django_middleware(logging)
    ```

and ``MIDDLEWARE = [..., "myproject.logging.LoggingMiddleware"]``.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from django.core.exceptions import BadRequest, PermissionDenied, SuspiciousOperation
from django.http import Http404, HttpRequest, HttpResponseBase

from cloudlogpy.adapters.frameworks.errors import report_request_exception
from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.models import ResponseInfo

if TYPE_CHECKING:
    from cloudlogpy.integration import Logging

# Status Django's exception handling answers these exceptions with
_EXCEPTION_STATUS: tuple[tuple[type[Exception], int], ...] = (
    (Http404, 404),
    (PermissionDenied, 403),
    (BadRequest, 400),
    (SuspiciousOperation, 400),
)


def django_exception_status(exc: BaseException) -> int | None:
    """Return the status Django converts an exception into, if any."""
    for exc_type, status in _EXCEPTION_STATUS:
        if isinstance(exc, exc_type):
            return status
    return None


def create_django_middleware(logging: "Logging") -> type:
    """Create a Django middleware class bound to a logging facade.

    The middleware sets ``request.log`` to a request-scoped logger, records
    the response status and reports exceptions raised by views.

    Args:
        logging: Facade holding the root logger and user extractor.

    Returns:
        Middleware class to reference from ``MIDDLEWARE``.
    """

    class LoggingMiddleware:
        sync_capable = True
        async_capable = False

        def __init__(
            self, get_response: Callable[[HttpRequest], HttpResponseBase]
        ) -> None:
            self.get_response = get_response

        def __call__(self, request: HttpRequest) -> HttpResponseBase:
            log = logging.request_logger(request)
            request.log = log  # type: ignore[attr-defined]
            response = self.get_response(request)
            properties: Any = log.request_context.request
            properties.response = ResponseInfo(
                status_code=response.status_code,
                headers={name.lower(): value for name, value in response.items()},
            )
            return response

        def process_exception(
            self, request: HttpRequest, exception: Exception
        ) -> None:
            log: StructuredLogger | None = getattr(request, "log", None)
            if log is None:
                log = logging.request_logger(request)
                request.log = log  # type: ignore[attr-defined]
            status = django_exception_status(exception)
            report_request_exception(log, exception, status)

    return LoggingMiddleware
