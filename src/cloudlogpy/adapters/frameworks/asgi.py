"""ASGI middleware attaching a request-scoped logger to every request.

Works with any ASGI server (uvicorn, hypercorn, daphne) and framework
(Starlette, FastAPI, Django ASGI) without importing any of them.
"""

from collections.abc import Callable, Coroutine
from typing import Any

from cloudlogpy.adapters.frameworks.errors import report_request_exception
from cloudlogpy.core.logger import StructuredLogger
from cloudlogpy.core.models import ResponseInfo
from cloudlogpy.core.ports import ExtractUser

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

# Key under scope["state"]; Starlette exposes it as request.state.log
STATE_KEY = "log"


def _decode_headers(headers: list[tuple[bytes, bytes]]) -> dict[str, str]:
    return {
        name.decode("latin-1").lower(): value.decode("latin-1")
        for name, value in headers
    }


def get_request_logger(scope: Scope) -> StructuredLogger | None:
    """Return the logger the middleware attached to a scope."""
    return (scope.get("state") or {}).get(STATE_KEY)


class ASGILoggingMiddleware:
    """ASGI middleware that gives each request its own logger.

    The logger is stored at ``scope["state"]["log"]``, carries the trace of
    the request and reports exceptions escaping the wrapped app before they
    are re-raised.

    Example:
        ```python
        app.add_middleware(ASGILoggingMiddleware, logger=logging.logger)

        @app.get("/")
        async def root(request: Request):
            request.state.log.info("hello")
        ```
    """

    def __init__(
        self,
        app: ASGIApp,
        logger: StructuredLogger,
        extract_user: ExtractUser | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            logger: Logger the request loggers are derived from.
            extract_user: Returns the user of a request for error reports.
        """
        self.app = app
        self.logger = logger
        self.extract_user = extract_user

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        log = self.logger.request_child(scope, self.extract_user)
        scope.setdefault("state", {})[STATE_KEY] = log
        request: Any = log.request_context.request

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                request.response = ResponseInfo(
                    status_code=message["status"],
                    headers=_decode_headers(message.get("headers", [])),
                )
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except Exception as exc:
            report_request_exception(log, exc)
            raise
