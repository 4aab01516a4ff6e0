"""WSGI middleware attaching a request-scoped logger to every request."""

from collections.abc import Callable, Iterable, Iterator
from typing import Any

from cloudlogpy.adapters.frameworks.errors import report_request_exception
from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.models import ResponseInfo
from cloudlogpy.core.ports import ExtractUser

# WSGI type aliases
Environ = dict[str, Any]
StartResponse = Callable[..., Callable[[bytes], object]]
WSGIApp = Callable[[Environ, StartResponse], Iterable[bytes]]

ENVIRON_KEY = "cloudlogpy.log"


def get_request_logger(environ: Environ) -> StructuredLogger | None:
    """Return the logger the middleware attached to an environ."""
    return environ.get(ENVIRON_KEY)


class WSGILoggingMiddleware:
    """WSGI middleware that gives each request its own logger.

    The logger is stored at ``environ["cloudlogpy.log"]``. Exceptions raised
    by the wrapped app, including while its body is iterated, are reported
    and re-raised.
    """

    def __init__(
        self,
        app: WSGIApp,
        logger: StructuredLogger,
        extract_user: ExtractUser | None = None,
    ) -> None:
        self.app = app
        self.logger = logger
        self.extract_user = extract_user

    def __call__(
        self, environ: Environ, start_response: StartResponse
    ) -> Iterable[bytes]:
        log = self.logger.request_child(environ, self.extract_user)
        environ[ENVIRON_KEY] = log
        request: Any = log.request_context.request

        def wrapped_start_response(
            status: str, headers: list[tuple[str, str]], exc_info: Any = None
        ) -> Callable[[bytes], object]:
            request.response = ResponseInfo(
                status_code=int(status.split(" ", 1)[0]),
                headers={name.lower(): value for name, value in headers},
            )
            if exc_info is None:
                return start_response(status, headers)
            return start_response(status, headers, exc_info)

        try:
            body = self.app(environ, wrapped_start_response)
        except Exception as exc:
            report_request_exception(log, exc)
            raise
        return self._stream(log, body)

    def _stream(self, log: StructuredLogger, body: Iterable[bytes]) -> Iterator[bytes]:
        try:
            yield from body
        except Exception as exc:
            report_request_exception(log, exc)
            raise
        finally:
            close = getattr(body, "close", None)
            if close is not None:
                close()
